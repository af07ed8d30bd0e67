"""Tests for the bagel-client command line."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from conftest import DATA, JOIN, TEST_BASE_URL, TEST_IMAGE_URL

from bagel_client.cli import build_parser, default_output_path, main
from bagel_client.cli import run as run_command
from bagel_client.client import BagelClient

IMAGE_PATH = "/gradio_api/file=/tmp/gradio/out/image.webp"


@pytest.fixture
def patched_client(fake_server):
    """Make the CLI build clients that talk to the fake server."""

    def factory(settings):
        transport = httpx.MockTransport(fake_server.handler)
        return BagelClient(
            settings=settings, http_client=httpx.AsyncClient(transport=transport)
        )

    with patch("bagel_client.cli.BagelClient", side_effect=factory) as mock_cls:
        yield mock_cls


class TestBuildParser:
    """Tests for argument parsing."""

    @pytest.mark.unit
    def test_generate_defaults(self) -> None:
        """Test generate falls back to square images and seed 0."""
        args = build_parser().parse_args(["generate", "A sunset"])

        assert args.command == "generate"
        assert args.ratio == "1:1"
        assert args.seed == 0
        assert args.output is None
        assert args.show_thinking is False

    @pytest.mark.unit
    def test_invalid_ratio_rejected(self) -> None:
        """Test unsupported ratios are rejected by the parser."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["generate", "A sunset", "--ratio", "2:1"])

    @pytest.mark.unit
    def test_caption_options(self) -> None:
        """Test caption flags are parsed."""
        args = build_parser().parse_args(
            [
                "--url",
                TEST_BASE_URL,
                "caption",
                "meme.jpg",
                "Why is this funny?",
                "--max-new-tokens",
                "256",
                "--show-thinking",
            ]
        )

        assert args.url == TEST_BASE_URL
        assert args.image == Path("meme.jpg")
        assert args.max_new_tokens == 256
        assert args.show_thinking is True

    @pytest.mark.unit
    def test_command_required(self) -> None:
        """Test a subcommand must be given."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestDefaultOutputPath:
    """Tests for default_output_path."""

    @pytest.mark.unit
    def test_timestamped_png(self) -> None:
        """Test the default name is a timestamped PNG."""
        path = default_output_path()

        assert path.name.startswith("output_")
        assert path.suffix == ".png"


class TestRun:
    """Tests for running commands against the fake server."""

    @pytest.mark.unit
    def test_generate_saves_image(
        self, fake_server, patched_client, run, tmp_path, capsys
    ) -> None:
        """Test generate downloads the produced image to the output path."""
        fake_server.complete_job({"data": [{"url": TEST_IMAGE_URL}]})
        fake_server.files[IMAGE_PATH] = b"RIFFimage"
        output = tmp_path / "out" / "sunset.png"
        args = build_parser().parse_args(
            [
                "--url",
                TEST_BASE_URL,
                "generate",
                "A sunset",
                "--seed",
                "7",
                "-o",
                str(output),
            ]
        )

        status = run(run_command(args))

        assert status == 0
        assert output.read_bytes() == b"RIFFimage"
        assert f"Image saved to: {output}" in capsys.readouterr().out
        assert fake_server.join_body()["data"][11] == 7

    @pytest.mark.unit
    def test_edit_passes_sampling_flags(
        self, fake_server, patched_client, run, sample_image_path, tmp_path
    ) -> None:
        """Test guidance and sampling flags reach their positional slots."""
        fake_server.complete_upload()
        fake_server.complete_job({"data": [{"url": TEST_IMAGE_URL}]})
        fake_server.files[IMAGE_PATH] = b"RIFFimage"
        args = build_parser().parse_args(
            [
                "--url",
                TEST_BASE_URL,
                "edit",
                str(sample_image_path),
                "Make it night",
                "--cfg-img-scale",
                "1.5",
                "--timesteps",
                "25",
                "--do-sample",
                "--temperature",
                "0.9",
                "-o",
                str(tmp_path / "night.png"),
            ]
        )

        run(run_command(args))

        data = fake_server.join_body()["data"]
        assert data[4] == 1.5
        assert data[7] == 25
        assert data[11] is True
        assert data[12] == 0.9

    @pytest.mark.unit
    def test_caption_prints_thinking(
        self, fake_server, patched_client, run, sample_image_path, capsys
    ) -> None:
        """Test caption prints the reasoning before the answer."""
        fake_server.complete_upload()
        fake_server.complete_job({"data": ["<think>\nhmm</think>\nA cat."]})
        args = build_parser().parse_args(
            ["--url", TEST_BASE_URL, "caption", str(sample_image_path), "What?"]
        )

        status = run(run_command(args))

        assert status == 0
        assert capsys.readouterr().out == "Thinking:\nhmm\n\nA cat.\n"


class TestMain:
    """Tests for the console entry point."""

    @pytest.mark.unit
    def test_protocol_error_exits_nonzero(
        self, fake_server, patched_client, capsys
    ) -> None:
        """Test a job stream without a result prints an error and exits 1."""
        fake_server.streams[DATA] = []
        argv = ["bagel-client", "--url", TEST_BASE_URL, "generate", "A sunset"]

        with patch.object(sys, "argv", argv), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert capsys.readouterr().out.startswith("Error: No output received")
        assert fake_server.calls() == [f"POST {JOIN}", f"GET {DATA}"]

    @pytest.mark.unit
    def test_missing_image_exits_nonzero(
        self, patched_client, tmp_path, capsys
    ) -> None:
        """Test a missing input image is reported without a traceback."""
        argv = [
            "bagel-client",
            "--url",
            TEST_BASE_URL,
            "edit",
            str(tmp_path / "missing.png"),
            "Make it night",
        ]

        with patch.object(sys, "argv", argv), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert capsys.readouterr().out.startswith("Error:")

    @pytest.mark.unit
    def test_invalid_url_exits_nonzero(self, patched_client, capsys) -> None:
        """Test a malformed server URL is reported without a traceback."""
        argv = ["bagel-client", "--url", "localhost:7865", "generate", "A sunset"]

        with patch.object(sys, "argv", argv), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert capsys.readouterr().out.startswith("Error:")
        patched_client.assert_not_called()

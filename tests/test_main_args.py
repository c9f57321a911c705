import unittest

from unittest import mock

from core.exceptions import RemoteWriteError
from data.models import Article
from data.models import Divider
from data.models import Image
from data.models import Paragraph
from data.models import SaveResult
from data.models import plain_rich_text
from main import main
from main import parse_args


class TestMainArgs(unittest.TestCase):
    """Tests for CLI argument parser and exit codes."""

    def test_parse_defaults(self) -> None:
        """Should parse url with defaults.

        Args:
            self: Test case instance.
        """

        args = parse_args(["--url", "https://mp.weixin.qq.com/s/abc"])

        self.assertEqual(args.url, "https://mp.weixin.qq.com/s/abc")
        self.assertEqual(args.destination, "notion")
        self.assertEqual(args.tags, [])
        self.assertEqual(args.image_strategy, "")
        self.assertEqual(args.summarize, False)
        self.assertEqual(args.dry_run, False)

    def test_parse_feishu_with_tags(self) -> None:
        """Should parse repeated tags and boolean flags.

        Args:
            self: Test case instance.
        """

        argv = [
            "--url",
            "https://x/a",
            "--destination",
            "feishu",
            "--tag",
            "ai",
            "--tag",
            "notes",
            "--image-strategy",
            "rehost",
            "--summarize",
            "--dry-run"
        ]
        args = parse_args(argv)

        self.assertEqual(args.destination, "feishu")
        self.assertEqual(args.tags, ["ai", "notes"])
        self.assertEqual(args.image_strategy, "rehost")
        self.assertEqual(args.summarize, True)
        self.assertEqual(args.dry_run, True)

    def test_invalid_destination_rejected(self) -> None:
        """Unknown destinations should exit with usage error.

        Args:
            self: Test case instance.
        """

        with mock.patch("sys.stderr"):
            with self.assertRaises(SystemExit):
                parse_args(["--url", "https://x/a", "--destination", "evernote"])

    @mock.patch("main.ClipPipeline")
    def test_dry_run_prints_counts(self, pipeline_cls) -> None:
        """Dry run should parse only and exit 0.

        Args:
            self: Test case instance.
            pipeline_cls: Patched pipeline class.
        """

        pipeline_cls.return_value.parse.return_value = Article(
            title = "T",
            author = "A",
            excerpt = "",
            blocks = (Paragraph(text = plain_rich_text("hi")), Image(source_url = "http://x/a.png"), Divider())
        )

        with mock.patch("builtins.print") as printed:
            exit_code = main(["--url", "https://x/a", "--dry-run"])

        self.assertEqual(exit_code, 0)
        pipeline_cls.return_value.save.assert_not_called()
        lines = [call.args[0] for call in printed.call_args_list]
        self.assertIn("blocks: 3", lines)
        self.assertIn("  Image: 1", lines)

    @mock.patch("main.ClipPipeline")
    def test_remote_failure_exit_code(self, pipeline_cls) -> None:
        """Classified remote failures should exit with code 2.

        Args:
            self: Test case instance.
            pipeline_cls: Patched pipeline class.
        """

        pipeline_cls.return_value.save.side_effect = RemoteWriteError(
            cause = "Unauthorized",
            message = "Credential is invalid or expired"
        )

        self.assertEqual(main(["--url", "https://x/a"]), 2)

    @mock.patch("main.ClipPipeline")
    def test_save_success(self, pipeline_cls) -> None:
        """Successful save returns 0 and forwards arguments.

        Args:
            self: Test case instance.
            pipeline_cls: Patched pipeline class.
        """

        pipeline_cls.return_value.save.return_value = SaveResult(
            destination = "feishu",
            remote_id = "rec_1",
            title = "T",
            block_count = 3
        )

        with mock.patch("builtins.print"):
            exit_code = main(["--url", "https://x/a", "--destination", "feishu", "--tag", "ai"])

        self.assertEqual(exit_code, 0)
        pipeline_cls.return_value.save.assert_called_once_with(
            url = "https://x/a",
            destination = "feishu",
            tags = ["ai"],
            summarize = False
        )


if __name__ == "__main__":
    unittest.main()

import unittest

from core.block_builder import BlockBuilder
from data.extractor import DEFAULT_AUTHOR
from data.extractor import ArticleExtractor


class TestArticleExtractor(unittest.TestCase):
    """Tests for page metadata and content region extraction."""

    def test_extract_article_page(self) -> None:
        """Metadata selectors and content container should be honored.

        Args:
            self: Test case instance.
        """

        html = """
        <html><head>
          <title>Page title</title>
          <meta property="og:title" content="OG title">
          <meta name="description" content="Short intro">
        </head><body>
          <h1 id="activity-name">  Real title  </h1>
          <a id="js_name">Writer</a>
          <div id="js_content"><p>Body text</p><script>alert(1)</script></div>
        </body></html>
        """
        extracted = ArticleExtractor().extract(html)

        self.assertEqual(extracted.title, "Real title")
        self.assertEqual(extracted.author, "Writer")
        self.assertEqual(extracted.excerpt, "Short intro")
        self.assertIn("<p>Body text</p>", extracted.content_html)
        self.assertNotIn("script", extracted.content_html)

    def test_meta_fallbacks(self) -> None:
        """Missing primary selectors fall back to meta tags.

        Args:
            self: Test case instance.
        """

        html = """
        <html><head>
          <meta property="og:title" content="OG title">
          <meta name="author" content="Meta author">
          <meta property="og:description" content="OG intro">
        </head><body><div class="rich_media_content"><p>Text here</p></div></body></html>
        """
        extracted = ArticleExtractor().extract(html)

        self.assertEqual(extracted.title, "OG title")
        self.assertEqual(extracted.author, "Meta author")
        self.assertEqual(extracted.excerpt, "OG intro")
        self.assertIn("Text here", extracted.content_html)

    def test_no_content_container(self) -> None:
        """Pages without a content container give empty blocks and a fallback title.

        Args:
            self: Test case instance.
        """

        extracted = ArticleExtractor().extract("<html><body><p>stray</p></body></html>")
        blocks = BlockBuilder().build(extracted.content_html)

        self.assertTrue(extracted.title)
        self.assertEqual(extracted.author, DEFAULT_AUTHOR)
        self.assertEqual(extracted.content_html, "")
        self.assertEqual(blocks, [])


if __name__ == "__main__":
    unittest.main()

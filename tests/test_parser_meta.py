import requests

from config import Settings
from fakes import FakeResponse, FakeSession
from parser_meta import extract_url_metadata, fetch_url_metadata

ARTICLE_HTML = """
<html lang="en-US">
<head>
  <title>Fallback title</title>
  <meta property="og:title" content="Romantic norms are in flux" />
  <meta property="og:description" content="America&#8217;s anxieties &amp; more" />
  <meta property="og:image" content="https://cdn.test/hero.jpg" />
  <meta property="og:site_name" content="POLITICO" />
  <meta property="article:published_time" content="2024-02-26T05:00:00Z" />
  <meta name="author" content="Rebecca Jennings" />
  <script type="application/ld+json">
    {"@type": "NewsArticle", "author": [{"name": "Rebecca Jennings"}, {"name": "Second Writer"}]}
  </script>
</head>
<body></body>
</html>
"""

JSONLD_ONLY_HTML = """
<html lang="de">
<head>
  <script type="application/ld+json">
    {"@graph": [
      {"@type": "CollectionPage", "headline": "Die besten Geschichten",
       "description": "Eine Sammlung", "image": {"url": "https://cdn.test/de.jpg"},
       "publisher": {"name": "Pocket"}, "datePublished": "2024-03-01",
       "author": [{"name": "Anna"}, {"name": "Ben"}]}
    ]}
  </script>
</head>
</html>
"""


def test_extract_from_meta_tags():
    meta = extract_url_metadata("https://www.politico.com/a", ARTICLE_HTML)
    assert meta.title == "Romantic norms are in flux"
    assert meta.excerpt == "America’s anxieties & more"
    assert meta.image_url == "https://cdn.test/hero.jpg"
    assert meta.publisher == "POLITICO"
    assert meta.language == "en"
    assert meta.date_published == "2024-02-26T05:00:00Z"
    # meta author wins, JSON-LD is only a fallback
    assert meta.authors == "Rebecca Jennings"
    assert meta.is_collection is None


def test_extract_from_jsonld_graph():
    meta = extract_url_metadata("https://getpocket.com/de/collections/x", JSONLD_ONLY_HTML)
    assert meta.title == "Die besten Geschichten"
    assert meta.excerpt == "Eine Sammlung"
    assert meta.image_url == "https://cdn.test/de.jpg"
    assert meta.publisher == "Pocket"
    assert meta.language == "de"
    assert meta.date_published == "2024-03-01"
    assert meta.authors == "Anna,Ben"
    assert meta.is_collection is True


def test_fetch_failure_returns_empty_metadata():
    session = FakeSession(requests.ConnectionError("boom"))
    meta = fetch_url_metadata("https://example.com/a", session, Settings())
    assert meta.url == "https://example.com/a"
    assert meta.title is None


def test_fetch_non_html_returns_empty_metadata():
    session = FakeSession(FakeResponse("https://example.com/a.pdf", content_type="application/pdf", text="%PDF"))
    meta = fetch_url_metadata("https://example.com/a.pdf", session, Settings())
    assert meta.title is None


def test_fetch_html():
    session = FakeSession(FakeResponse("https://www.politico.com/a", content_type="text/html; charset=utf-8", text=ARTICLE_HTML))
    meta = fetch_url_metadata("https://www.politico.com/a", session, Settings())
    assert meta.publisher == "POLITICO"
    assert session.calls[0]["allow_redirects"] is True

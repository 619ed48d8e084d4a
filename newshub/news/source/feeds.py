from newshub.news.source.registry import feed_source


feed_source(
    id="tech-crunch",
    name="TechCrunch",
    url="https://techcrunch.com/feed/",
    category="technology",
)

feed_source(
    id="the-verge",
    name="The Verge",
    url="https://www.theverge.com/rss/index.xml",
    category="technology",
)

feed_source(
    id="reuters",
    name="Reuters",
    url="https://feeds.reuters.com/reuters/topNews",
    category="world",
)

feed_source(
    id="bloomberg",
    name="Bloomberg",
    url="https://feeds.bloomberg.com/markets/news.rss",
    category="business",
)

feed_source(
    id="nature",
    name="Nature",
    url="https://www.nature.com/nature.rss",
    category="science",
)

feed_source(
    id="espn",
    name="ESPN",
    url="https://www.espn.com/espn/rss/news/news",
    category="sports",
)

feed_source(
    id="bbc-news",
    name="BBC News",
    url="http://feeds.bbci.co.uk/news/rss.xml",
    category="world",
)

feed_source(
    id="cnn",
    name="CNN",
    url="http://rss.cnn.com/rss/edition.rss",
    category="general",
)

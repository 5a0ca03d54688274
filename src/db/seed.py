"""
Default healthcare IT news sources.
"""

DEFAULT_SOURCES = [
    {
        'name': 'Healthcare IT News',
        'url': 'https://www.healthcareitnews.com',
        'kind': 'rss',
        'feed_url': 'https://www.healthcareitnews.com/rss.xml',
        'priority': 'high',
    },
    {
        'name': 'HIMSS News',
        'url': 'https://www.himss.org/news',
        'kind': 'scrape',
        'scrape_selector': '.news-item',
        'priority': 'high',
    },
    {
        'name': "Becker's Health IT",
        'url': 'https://www.beckershospitalreview.com/healthcare-information-technology.html',
        'kind': 'scrape',
        'scrape_selector': '.article-headline',
        'priority': 'high',
    },
    {
        'name': 'Health Data Management',
        'url': 'https://www.healthdatamanagement.com',
        'kind': 'rss',
        'feed_url': 'https://www.healthdatamanagement.com/rss',
        'priority': 'medium',
    },
    {
        'name': 'CHIME Central',
        'url': 'https://chimecentral.org',
        'kind': 'scrape',
        'scrape_selector': '.news-article',
        'priority': 'medium',
    },
]

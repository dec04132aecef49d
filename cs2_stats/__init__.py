"""CS2 player stats scraper: queue storage, page extraction and batch orchestration."""

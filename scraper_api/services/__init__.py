"""Supporting services package.

Contains the in-memory result cache shared by the site scraper and the API.
"""

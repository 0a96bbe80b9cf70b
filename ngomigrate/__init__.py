"""ngomigrate - NGO spreadsheet to Strapi organization migration."""

__version__ = "0.1.0"

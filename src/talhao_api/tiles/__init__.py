"""Tile resolution: grid math, upstream providers, placeholders and the fallback resolver."""

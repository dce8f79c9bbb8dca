"""Data models for Notion pages, blocks, comments and thread actions."""

"""Variable-height virtual scrolling for Qt item lists."""

"""Adal Core: multi-provider streaming chat proxy and conversation store."""

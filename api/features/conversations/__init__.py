"""Conversations feature: the per-user bot conversation reference store.

One row per user holds what is needed to resume a 1:1 bot conversation
(conversation id, service URL, install timestamp) for proactive messages.
"""

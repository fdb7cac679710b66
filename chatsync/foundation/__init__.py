"""Configuration and shared value types used across chatsync."""

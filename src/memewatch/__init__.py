"""memewatch - Whale buy detection and alerting for Base and Solana meme tokens."""

__version__ = "0.1.0"

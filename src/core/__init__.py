"""Core domain package for replywatch.

Core contains rule matching, the strike-out state machine, history
reconciliation and write coalescing without any Telegram or file-specific
code, keeping the business logic portable.
"""

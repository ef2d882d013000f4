"""External capability adapters.

Modules:
    - base: IntegrationBase with retry
    - browser: Playwright Chromium session
    - mail: SMTP sender
    - mailbox: IMAP reader
    - web: requests fetcher
    - feeds: RSS/Atom parsing and news search
    - images: OpenAI image generation
"""

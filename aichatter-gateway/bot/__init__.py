"""AI-Chatter Bridge -- Telegram bot package."""

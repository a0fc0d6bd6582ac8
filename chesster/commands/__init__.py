"""Generic commands shipped with the bot."""

"""Services shared by the bot and the stage."""

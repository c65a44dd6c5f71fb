"""Services for CardVerse."""

"""Raw record interface and source connections."""

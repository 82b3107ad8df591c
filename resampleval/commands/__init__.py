"""Click subcommands for the resampleval CLI."""

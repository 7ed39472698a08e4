from zapaddon.cli.main import cli

cli()

from prt_guard.cli import cli

cli()

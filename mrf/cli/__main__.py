"""Module entry point for `python -m mrf.cli`."""

if __name__ == "__main__":  # pragma: no cover (invocation driven)
    from mrf.cli import cli

    cli()

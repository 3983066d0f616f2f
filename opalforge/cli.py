import click

from opalforge.commands.certificate import certificate
from opalforge.commands.serve import serve


@click.group()
def cli():
    """OpalForge - Authenticity certificate issuing and verification service"""
    pass


cli.add_command(serve)
cli.add_command(certificate)


if __name__ == "__main__":
    cli()

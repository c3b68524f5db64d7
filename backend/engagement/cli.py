from __future__ import annotations

import json

import click
from flask.cli import AppGroup

from engagement.jobs.points_reconciler import rebuild_account, reconcile_accounts
from engagement.utils.points import unfreeze_account

engagement_cli = AppGroup("engagement", help="Points ledger maintenance.")


@engagement_cli.command("reconcile")
@click.option("--limit", default=500, show_default=True, type=int)
@click.option("--no-freeze", is_flag=True, help="Audit anomalies without freezing the accounts.")
def reconcile_cmd(limit, no_freeze):
    """Check every account against its ledger."""
    res = reconcile_accounts(limit=limit, freeze=not no_freeze)
    click.echo(json.dumps(res))


@engagement_cli.command("rebuild")
@click.argument("user_id")
@click.argument("creator_id", required=False)
def rebuild_cmd(user_id, creator_id):
    """Replay the ledger into USER_ID's account (the cross-creator row when CREATOR_ID is omitted)."""
    res = rebuild_account(user_id, creator_id)
    click.echo(json.dumps(res))


@engagement_cli.command("unfreeze")
@click.argument("user_id")
@click.argument("creator_id", required=False)
def unfreeze_cmd(user_id, creator_id):
    ok = unfreeze_account(user_id, creator_id)
    click.echo("unfrozen" if ok else "not frozen")

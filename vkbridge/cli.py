"""Click CLI for inspecting channels and sending VK messages by hand."""

from __future__ import annotations

import asyncio
import json
import uuid
from pathlib import Path

import click

from vkbridge.audit.logger import AuditLogger, validate_audit_chain
from vkbridge.backend import MemoryBackend
from vkbridge.channels import StaticChannelRegistry, load_channels_from_file
from vkbridge.models import URN, ChannelConfig, MsgStatus, OutboundMessage
from vkbridge.webhook.errors import SendError
from vkbridge.webhook.outbound import API_BASE_URL
from vkbridge.webhook.vk import new_handler


@click.group()
@click.option("--channels", default="config/channels.json", help="Path to channels JSON.")
@click.option("--audit-log", default=None, help="Audit log file path.")
@click.option("--api-base-url", default=API_BASE_URL, help="VK API base URL.")
@click.pass_context
def cli(ctx: click.Context, channels: str, audit_log: str | None, api_base_url: str) -> None:
    """VK channel adapter CLI."""
    ctx.ensure_object(dict)
    ctx.obj["channels_path"] = channels
    ctx.obj["audit_logger"] = AuditLogger(audit_log) if audit_log else None
    ctx.obj["api_base_url"] = api_base_url


def _registry(ctx: click.Context) -> StaticChannelRegistry:
    try:
        return load_channels_from_file(ctx.obj["channels_path"])
    except (FileNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("channels")
@click.pass_context
def channels_list(ctx: click.Context) -> None:
    """List configured VK channels with secrets masked."""
    registry = _registry(ctx)
    click.echo(json.dumps([c.redacted() for c in registry.all()], indent=2))


@cli.command()
@click.argument("channel_uuid")
@click.argument("urn")
@click.argument("text")
@click.option("--id", "msg_id", default=None, help="Message id, reused as VK random_id.")
@click.option(
    "--attachment", "attachments", multiple=True,
    help="Attachment as <content-type>:<url>. May be repeated.",
)
@click.pass_context
def send(
    ctx: click.Context,
    channel_uuid: str,
    urn: str,
    text: str,
    msg_id: str | None,
    attachments: tuple[str, ...],
) -> None:
    """Send TEXT to URN through the channel CHANNEL_UUID."""
    channel = _registry(ctx).get(channel_uuid)
    if channel is None:
        raise click.ClickException(f"Unknown channel: {channel_uuid}")
    try:
        parsed_urn = URN.parse(urn)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="URN") from exc

    msg = OutboundMessage(
        # VK random_id must fit in a signed 32-bit integer
        id=msg_id or str(uuid.uuid4().int % 2**31),
        channel_uuid=channel.uuid,
        urn=parsed_urn,
        text=text,
        attachments=list(attachments),
    )
    status, failed = asyncio.run(_send(ctx, channel, msg))
    click.echo(status.model_dump_json(indent=2))
    if failed:
        ctx.exit(1)


async def _send(
    ctx: click.Context, channel: ChannelConfig, msg: OutboundMessage,
) -> tuple[MsgStatus, bool]:
    handler = new_handler(
        MemoryBackend(),
        audit_logger=ctx.obj["audit_logger"],
        api_base_url=ctx.obj["api_base_url"],
    )
    try:
        return await handler.send_msg(channel, msg), False
    except SendError as exc:
        click.echo(f"Send failed: {exc}", err=True)
        return exc.status or MsgStatus(channel_uuid=channel.uuid, msg_id=msg.id), True
    finally:
        await handler.aclose()


@cli.command("verify-audit")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def verify_audit(ctx: click.Context, log_path: Path) -> None:
    """Validate the hash chain of an audit log."""
    result = validate_audit_chain(log_path)
    if result.valid:
        click.echo("Audit chain valid")
        return
    click.echo(f"Audit chain broken at line {result.broken_at_line}", err=True)
    ctx.exit(1)


def main() -> None:
    cli(obj={})

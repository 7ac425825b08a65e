"""CLI commands for axon."""

import click


def _load_config():
    from axon import logging as axon_log
    from axon.config import Config, ConfigError

    try:
        return Config.load()
    except ConfigError as e:
        axon_log.config_invalid(str(e))
        raise SystemExit(1) from e


@click.group(invoke_without_command=True)
@click.version_option(package_name="axon-tui")
@click.pass_context
def main(ctx) -> None:
    """Terminal client for the synapse torrent daemon."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(tui)


@main.command()
@click.option("--server", "-s", default=None, help="Server URL, e.g. ws://localhost:8412")
@click.option("--password", "-p", default=None, help="Server password")
@click.option(
    "--autoconnect/--no-autoconnect",
    default=None,
    help="Connect on startup instead of waiting at the login form",
)
@click.option("--debug", is_flag=True, help="Write debug events to the session log")
def tui(server: str | None, password: str | None, autoconnect: bool | None, debug: bool) -> None:
    """Launch the interactive client."""
    import logging

    from axon import logging as axon_log
    from axon.config import ConfigError
    from axon.tui.app import run_tui

    config = _load_config()
    if server is not None:
        config.connection.server = server
    if password is not None:
        config.connection.password = password
    if autoconnect is not None:
        config.connection.autoconnect = autoconnect

    try:
        config.validate()
    except ConfigError as e:
        axon_log.config_invalid(str(e))
        raise SystemExit(1) from e

    axon_log.configure(config, logging.DEBUG if debug else logging.INFO)

    try:
        logged_in = run_tui(config)
    except OSError as e:
        axon_log.fatal_input_error(str(e))
        raise SystemExit(1) from e
    axon_log.session_ended(logged_in)


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    cfg = _load_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo(f"Log file: {cfg.log_path}")
    click.echo()
    click.echo("[connection]")
    click.echo(f"  server = {cfg.connection.server or '(unset)'}")
    click.echo(f"  password = {'(set)' if cfg.connection.password else '(unset)'}")
    click.echo(f"  autoconnect = {str(cfg.connection.autoconnect).lower()}")
    click.echo(f"  connect_timeout = {cfg.connection.connect_timeout}")
    click.echo()
    click.echo("[tui]")
    click.echo(f"  render_interval = {cfg.tui.render_interval}")
    click.echo(f"  poll_interval = {cfg.tui.poll_interval}")
    click.echo(f"  tracker_pane_percent = {cfg.tui.tracker_pane_percent}")
    click.echo(f"  details_height = {cfg.tui.details_height}")
    click.echo()
    click.echo("[system]")
    click.echo(f"  log_max_bytes = {cfg.system.log_max_bytes}")
    click.echo(f"  log_backup_count = {cfg.system.log_backup_count}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from axon import logging as axon_log

    cfg = _load_config()

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        axon_log.config_created(str(cfg.config_path))

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from axon.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")


if __name__ == "__main__":
    main()

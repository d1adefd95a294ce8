import click

from . import __version__
from .config import AppConfig, ConfigManager, TOKEN_ENV_VAR
from .errors import ConfigError


def _mask(token: str) -> str:
    return f"{token[:10]}...{token[-5:]}"


@click.group(name="feedwatch", help="Feed subscription Telegram bot")
def cli():
    pass


@cli.command(help="Show version")
def version():
    click.echo(f"feedwatch {__version__}")


@cli.command(help="Create configuration interactively")
@click.option(
    "--config-dir",
    type=click.Path(),
    default=None,
    help="Configuration directory"
)
def init(config_dir):
    config_manager = ConfigManager(config_dir)

    click.echo("🚀 Feedwatch - initial configuration\n")

    if config_manager.exists():
        existing = config_manager.load()
        click.echo("Found existing configuration:")
        if existing.bot_token:
            click.echo(f"  Bot Token: {_mask(existing.bot_token)}")
        if existing.admin_chat_id:
            click.echo(f"  Admin Chat ID: {existing.admin_chat_id}")
        if not click.confirm("\nOverwrite it?", default=False):
            click.echo("Cancelled")
            return

    click.echo("\n1. Telegram Bot Token")
    click.echo("   Get one from @BotFather")
    bot_token = click.prompt("   Bot Token", type=str)

    click.echo("\n2. Admin Chat ID (optional, receives storage alerts)")
    admin_chat_id_str = click.prompt(
        "   Admin Chat ID (empty to skip)",
        type=str,
        default=""
    )
    admin_chat_id = int(admin_chat_id_str) if admin_chat_id_str else None

    click.echo("\n3. Feed download timeout")
    feed_timeout = click.prompt("   Seconds", type=int, default=30)

    config = AppConfig(
        bot_token=bot_token,
        admin_chat_id=admin_chat_id,
        feed_timeout=feed_timeout
    )
    config_manager.save(config)

    click.echo(f"\n✅ Configuration saved to: {config_manager.config_path}")
    click.echo("\nStart the bot with 'feedwatch run'")


@cli.command(help="Show current configuration")
@click.option(
    "--config-dir",
    type=click.Path(),
    default=None,
    help="Configuration directory"
)
def config(config_dir):
    config_manager = ConfigManager(config_dir)
    cfg = config_manager.load()

    click.echo("📋 Current configuration:\n")
    if cfg.bot_token:
        click.echo(f"  Bot Token: {_mask(cfg.bot_token)}")
    else:
        click.echo(f"  Bot Token: not set (config file or {TOKEN_ENV_VAR})")
    if cfg.admin_chat_id:
        click.echo(f"  Admin Chat ID: {cfg.admin_chat_id}")
    click.echo(f"  Feed timeout: {cfg.feed_timeout}s")
    click.echo(f"  Database busy timeout: {cfg.busy_timeout}s")
    click.echo(f"\n  Config file: {config_manager.config_path}"
               f"{'' if config_manager.exists() else ' (missing)'}")
    click.echo(f"  Database: {config_manager.db_path}")


@cli.command(name="db-version", help="Show database version")
@click.option(
    "--config-dir",
    type=click.Path(),
    default=None,
    help="Configuration directory"
)
def db_version(config_dir):
    config_manager = ConfigManager(config_dir)
    db_path = config_manager.db_path

    if not db_path.exists():
        click.echo("❌ Database file does not exist")
        return

    from .migrations import get_schema_version, CURRENT_VERSION

    current = get_schema_version(db_path)
    click.echo("📊 Database version:")
    click.echo(f"   current: v{current}")
    click.echo(f"   latest: v{CURRENT_VERSION}")
    click.echo(f"   path: {db_path}")

    if current < CURRENT_VERSION:
        click.echo("\n⚠️  Migration needed, run: feedwatch db-migrate")
    else:
        click.echo("\n✅ Database is up to date")


@cli.command(name="db-migrate", help="Run database migrations")
@click.option(
    "--config-dir",
    type=click.Path(),
    default=None,
    help="Configuration directory"
)
@click.option(
    "--yes", "-y",
    is_flag=True,
    help="Skip confirmation"
)
def db_migrate(config_dir, yes):
    config_manager = ConfigManager(config_dir)
    db_path = config_manager.db_path

    if not db_path.exists():
        click.echo("❌ Database file does not exist, nothing to migrate")
        return

    from .migrations import get_schema_version, migrate, CURRENT_VERSION

    current = get_schema_version(db_path)

    if current >= CURRENT_VERSION:
        click.echo(f"✅ Database is up to date (v{current})")
        return

    click.echo("📊 Database migration:")
    click.echo(f"   current: v{current}")
    click.echo(f"   target: v{CURRENT_VERSION}")
    click.echo(f"   path: {db_path}")

    if not yes:
        click.echo("\n⚠️  Back up the database first:")
        click.echo(f"   cp {db_path} {db_path}.bak")
        if not click.confirm("\nContinue?"):
            click.echo("Cancelled")
            return

    click.echo("\nMigrating...")
    try:
        old_ver, new_ver = migrate(db_path)
        click.echo(f"\n✅ Migrated: v{old_ver} → v{new_ver}")
    except Exception as e:
        click.echo(f"\n❌ Migration failed: {e}")
        raise


@cli.command(help="Show chat, feed and subscription counts")
@click.option(
    "--config-dir",
    type=click.Path(),
    default=None,
    help="Configuration directory"
)
def stats(config_dir):
    config_manager = ConfigManager(config_dir)

    if not config_manager.db_path.exists():
        click.echo("❌ Database file does not exist")
        return

    from .database import Database

    db = Database(config_manager.db_path)
    result = db.get_stats()
    click.echo("📊 Statistics\n")
    click.echo(f"  💬 Chats: {result['chat_count']}")
    click.echo(f"  📰 Feeds: {result['feed_count']}")
    click.echo(f"  📝 Subscriptions: {result['subscription_count']}")
    click.echo(f"  🕒 Chats with timezone: {result['timezone_count']}")


@cli.command(help="Start the bot")
@click.option(
    "--config-dir",
    type=click.Path(),
    default=None,
    help="Configuration directory"
)
def run(config_dir):
    config_manager = ConfigManager(config_dir)
    cfg = config_manager.load()

    try:
        token = config_manager.require_token(cfg)
    except ConfigError as e:
        raise click.ClickException(str(e))

    db_path = config_manager.get_db_path()
    if db_path.exists():
        from .migrations import check_migration_needed
        needs_migration, current_ver, latest_ver = check_migration_needed(db_path)
        if needs_migration:
            raise click.ClickException(
                f"Database schema is v{current_ver}, v{latest_ver} required. "
                f"Run: feedwatch db-migrate --config-dir {config_dir or '.'}"
            )

    from .app import setup_logging
    log_dir = config_manager.config_dir / "logs"
    setup_logging(log_dir)

    click.echo("🚀 Starting feedwatch...")
    click.echo(f"   Database: {db_path}")
    click.echo(f"   Logs: {log_dir}\n")

    from .app import Application
    from .database import Database

    db = Database(db_path, busy_timeout=cfg.busy_timeout)
    app = Application(config=cfg, token=token, db=db)
    app.run()


if __name__ == "__main__":
    cli()

"""Config commands -- view and modify global configuration.

Provides the ``fetchcache config`` sub-command group for reading,
updating, and resetting the user's global configuration file
(:class:`~fetchcache.models.GlobalConfig`): the default cache root,
fetch settings used by ``add``, and the default output format.
"""

from __future__ import annotations

import typer

from fetchcache.config import (
    get_config_dir,
    load_global_config,
    resolve_storage_config,
    save_global_config,
)
from fetchcache.models import GlobalConfig
from fetchcache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show current configuration and the effective cache root.

    Example::

        fetchcache config show
        fetchcache --json config show
    """
    config = load_global_config()
    root = ctx.obj.get("root") if ctx.obj else None
    info(f"Config directory: {get_config_dir()}")
    info(f"Cache root: {resolve_storage_config(cli_root=root, global_cfg=config).root}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'fetch.timeout')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the
    existing field's type (bool or int); string and unset fields take
    the value as given. The result is validated against
    :class:`~fetchcache.models.GlobalConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        fetchcache config set storage.root ~/caches
        fetchcache config set fetch.verify_ssl false
    """
    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    else:
        coerced = value  # type: ignore[assignment]

    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        fetchcache --force config reset
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")

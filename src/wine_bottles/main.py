"""CLI entrypoint for wine-bottles."""

import logging
from collections.abc import Iterable
from pathlib import Path

import rich_click as click

from wine_bottles import __version__
from wine_bottles.bottles.models import BottleArch, WindowsVersion
from wine_bottles.controllers import (
    BottleArchiveCommand,
    BottleCliController,
    BottleCloneCommand,
    BottleConfigureCommand,
    BottleCreateCommand,
    BottleRunCommand,
    ExecCommand,
    RuntimeInstallCommand,
    WorkflowRun,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = BottleCliController()

HOME_OPTION = click.option(
    "--home",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Data directory. Defaults to WINE_BOTTLES_HOME or ~/.wine-bottles.",
)
ENV_OPTION = click.option(
    "--env",
    "environment",
    multiple=True,
    metavar="KEY=VALUE",
    help="Environment variable to set. Can be repeated.",
)


@click.group()
@click.version_option(version=__version__, prog_name="wine-bottles")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Diagnostic logging level (written to stderr).",
)
def wine_bottles(log_level: str) -> None:
    """Manage Wine bottles and run programs inside them."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@wine_bottles.group()
def runtime() -> None:
    """Wine runtime commands."""


@runtime.command("detect")
@HOME_OPTION
def runtime_detect(home: Path | None) -> None:
    """Show the runtime that bottle commands will use."""

    _emit_lines(CONTROLLER.detect_runtime(home))


@runtime.command("install")
@HOME_OPTION
@click.argument("source")
def runtime_install(home: Path | None, source: str) -> None:
    """Install a runtime from a local archive or an http(s) URL."""

    _finish(CONTROLLER.install_runtime(RuntimeInstallCommand(home=home, source=source)))


@wine_bottles.group()
def bottle() -> None:
    """Bottle management commands."""


@bottle.command("list")
@HOME_OPTION
def bottle_list(home: Path | None) -> None:
    """List bottles."""

    _emit_lines(CONTROLLER.list_bottles(home))


@bottle.command("create")
@HOME_OPTION
@click.argument("name")
@click.option(
    "--win-version",
    type=click.Choice([version.value for version in WindowsVersion]),
    default=WindowsVersion.WIN10.value,
    show_default=True,
    help="Windows version reported inside the bottle.",
)
@click.option(
    "--arch",
    type=click.Choice([arch.value for arch in BottleArch]),
    default=BottleArch.WIN64.value,
    show_default=True,
    help="Prefix architecture.",
)
@ENV_OPTION
def bottle_create(
    home: Path | None,
    name: str,
    win_version: str,
    arch: str,
    environment: tuple[str, ...],
) -> None:
    """Create a bottle: initialize the prefix, then set its Windows version."""

    _finish(
        CONTROLLER.create_bottle(
            BottleCreateCommand(
                home=home,
                name=name,
                win_version=WindowsVersion(win_version),
                arch=BottleArch(arch),
                environment=_parse_pairs(environment, "--env"),
            ),
        ),
    )


@bottle.command("configure")
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
@ENV_OPTION
@click.option(
    "--dll",
    "dll_overrides",
    multiple=True,
    metavar="NAME=MODE",
    help="DLL override such as d3d11=native,builtin. Can be repeated.",
)
@click.option("--unset", multiple=True, help="Environment key or DLL name to remove.")
@click.option(
    "--win-version",
    type=click.Choice([version.value for version in WindowsVersion]),
    default=None,
    help="Change and apply the Windows version.",
)
def bottle_configure(  # noqa: PLR0913
    home: Path | None,
    bottle_key: str,
    environment: tuple[str, ...],
    dll_overrides: tuple[str, ...],
    unset: tuple[str, ...],
    win_version: str | None,
) -> None:
    """Update a bottle's environment, DLL overrides, or Windows version."""

    _finish(
        CONTROLLER.configure_bottle(
            BottleConfigureCommand(
                home=home,
                bottle=bottle_key,
                environment=_parse_pairs(environment, "--env"),
                dll_overrides=_parse_pairs(dll_overrides, "--dll"),
                unset=unset,
                win_version=WindowsVersion(win_version) if win_version else None,
            ),
        ),
    )


@bottle.command("delete")
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
@click.confirmation_option(prompt="Delete the bottle and its prefix folder?")
def bottle_delete(home: Path | None, bottle_key: str) -> None:
    """Delete a bottle by id or name."""

    _finish(CONTROLLER.delete_bottle(home, bottle_key))


@bottle.command("clone")
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
@click.argument("new_name")
def bottle_clone(home: Path | None, bottle_key: str, new_name: str) -> None:
    """Copy a bottle and its prefix under a new name."""

    _finish(
        CONTROLLER.clone_bottle(
            BottleCloneCommand(home=home, bottle=bottle_key, new_name=new_name),
        ),
    )


@bottle.command("export")
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
@click.argument("archive", type=click.Path(path_type=Path, dir_okay=False))
def bottle_export(home: Path | None, bottle_key: str, archive: Path) -> None:
    """Write a bottle folder to a .tar.gz archive."""

    _finish(
        CONTROLLER.export_bottle(
            BottleArchiveCommand(home=home, bottle=bottle_key, archive=archive),
        ),
    )


@bottle.command("import")
@HOME_OPTION
@click.argument("archive", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--name", "new_name", default=None, help="Name for the imported bottle.")
def bottle_import(home: Path | None, archive: Path, new_name: str | None) -> None:
    """Import a bottle archive under a fresh id."""

    _finish(
        CONTROLLER.import_bottle(
            BottleArchiveCommand(home=home, archive=archive, new_name=new_name),
        ),
    )


@bottle.command("shortcuts")
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
def bottle_shortcuts(home: Path | None, bottle_key: str) -> None:
    """Rescan Program Files for executables and list them."""

    _emit_lines(CONTROLLER.shortcuts(home, bottle_key))


@wine_bottles.group()
def run() -> None:
    """Run programs inside a bottle. Press Ctrl-C to stop the running task."""


@run.command("exe", context_settings={"ignore_unknown_options": True})
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
@click.argument("exe", type=click.Path(path_type=Path))
@click.argument("arguments", nargs=-1, type=click.UNPROCESSED)
def run_exe(home: Path | None, bottle_key: str, exe: Path, arguments: tuple[str, ...]) -> None:
    """Run a Windows executable."""

    _finish(
        CONTROLLER.run_exe(
            BottleRunCommand(home=home, bottle=bottle_key, target=str(exe), arguments=arguments),
        ),
    )


@run.command("install")
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
@click.argument("installer", type=click.Path(path_type=Path, exists=True, dir_okay=False))
def run_install(home: Path | None, bottle_key: str, installer: Path) -> None:
    """Run an .exe or .msi installer."""

    _finish(
        CONTROLLER.run_installer(
            BottleRunCommand(home=home, bottle=bottle_key, target=str(installer)),
        ),
    )


@run.command("winetricks")
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
@click.argument("verb")
def run_winetricks(home: Path | None, bottle_key: str, verb: str) -> None:
    """Run a winetricks verb unattended."""

    _finish(
        CONTROLLER.run_winetricks(BottleRunCommand(home=home, bottle=bottle_key, target=verb)),
    )


@run.command("shortcut")
@HOME_OPTION
@click.argument("bottle_key", metavar="BOTTLE")
@click.argument("shortcut")
def run_shortcut(home: Path | None, bottle_key: str, shortcut: str) -> None:
    """Run a scanned shortcut by id or name."""

    _finish(
        CONTROLLER.run_shortcut(BottleRunCommand(home=home, bottle=bottle_key, target=shortcut)),
    )


@wine_bottles.command("exec", context_settings={"ignore_unknown_options": True})
@HOME_OPTION
@click.option("--title", default=None, help="Task title. Defaults to the executable name.")
@click.option(
    "--cwd",
    type=click.Path(path_type=Path, exists=True, file_okay=False),
    default=None,
    help="Working directory.",
)
@ENV_OPTION
@click.argument("path")
@click.argument("arguments", nargs=-1, type=click.UNPROCESSED)
def exec_command(  # noqa: PLR0913
    home: Path | None,
    title: str | None,
    cwd: Path | None,
    environment: tuple[str, ...],
    path: str,
    arguments: tuple[str, ...],
) -> None:
    """Run any executable as a tracked task with streamed output."""

    _finish(
        CONTROLLER.exec_command(
            ExecCommand(
                home=home,
                path=path,
                arguments=arguments,
                title=title,
                environment=_parse_pairs(environment, "--env"),
                cwd=cwd,
            ),
        ),
    )


def _parse_pairs(values: tuple[str, ...], option: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for value in values:
        key, separator, item = value.partition("=")
        if not separator or not key.strip():
            raise click.BadParameter(f"Expected KEY=VALUE, got {value!r}.", param_hint=option)
        pairs[key.strip()] = item
    return pairs


def _finish(workflow: WorkflowRun) -> None:
    _emit_lines(workflow.lines())
    if workflow.alert_message:
        raise click.ClickException(workflow.alert_message)
    if not workflow.success:
        raise click.ClickException("Task did not complete successfully.")


def _emit_lines(lines: Iterable[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    wine_bottles()

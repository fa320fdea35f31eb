"""Command-line interface for courtside."""

import logging
from contextlib import contextmanager

import click

from courtside import __version__


@contextmanager
def _abort_on_error():
    """Echo user-facing errors and abort with a non-zero exit."""
    from sqlalchemy.exc import OperationalError

    from courtside.config_loader import ConfigError
    from courtside.io_csv import CSVImportError
    from courtside.validation import CourtsideError

    try:
        yield
    except (CourtsideError, ConfigError, CSVImportError) as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()
    except OperationalError as e:
        # Another writer held the database longer than the busy timeout
        click.echo(f"[ERROR] Database is busy, try again ({e.orig})", err=True)
        raise click.Abort()


def _services(ctx: click.Context):
    """Open the database and return (config, TournamentService, CourtScheduler)."""
    from courtside.scheduler import CourtScheduler
    from courtside.storage import DatabaseManager
    from courtside.tournament import TournamentService

    cfg = ctx.obj["config"]
    if "session" not in ctx.obj:
        db = DatabaseManager(cfg["database"])
        db.create_tables()
        session = db.get_session()
        ctx.call_on_close(session.close)
        ctx.obj["session"] = session

    session = ctx.obj["session"]
    service = TournamentService(session, max_pairing_attempts=cfg["max_pairing_attempts"])
    return cfg, service, CourtScheduler(session)


def _parse_match_id(value: str):
    """Seed match ids are integers, bracket match ids are '<t>-<round>-<match>'."""
    value = value.strip()
    return int(value) if value.isdigit() else value


def _team_names(service, tournament_id: int) -> dict[int, str]:
    return {t.id: t.name for t in service.list_teams(tournament_id)}


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", required=False, help="Path to config YAML file")
@click.option("--db", required=False, help="SQLite database path (overrides config)")
@click.pass_context
def cli(ctx: click.Context, config_path: str, db: str):
    """Courtside - seed rounds, brackets and court assignment for doubles tournaments."""
    from courtside.config_loader import load_and_validate_config

    with _abort_on_error():
        cfg = load_and_validate_config(config_path)
    if db:
        cfg["database"] = db

    logging.basicConfig(
        level=getattr(logging, cfg["log_level"]),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


# ============================================================================
# Tournaments and teams
# ============================================================================


@cli.command()
@click.option("--name", required=True, help="Tournament name")
@click.option("--matches-per-team", type=int, default=None, help="Seed matches per team")
@click.option("--courts", type=int, default=None, help="Number of courts")
@click.pass_context
def create_tournament(ctx, name: str, matches_per_team: int, courts: int):
    """Create a tournament with its courts.

    Example:
        courtside create-tournament --name "Spring Open" --courts 4
    """
    cfg, service, _ = _services(ctx)
    with _abort_on_error():
        tournament = service.create_tournament(
            name,
            seed_matches_per_team=(
                cfg["seed_matches_per_team"] if matches_per_team is None else matches_per_team
            ),
            total_courts=cfg["total_courts"] if courts is None else courts,
        )
    click.echo(
        f"[SUCCESS] Created tournament {tournament.id}: {tournament.name} "
        f"({tournament.total_courts} courts, {tournament.seed_matches_per_team} seed matches per team)"
    )


@cli.command()
@click.pass_context
def list_tournaments(ctx):
    """List tournaments (newest first)."""
    _, service, _ = _services(ctx)
    tournaments = service.list_tournaments()
    if not tournaments:
        click.echo("No tournaments yet")
        return
    for t in tournaments:
        click.echo(f"  {t.id}: {t.name} ({t.total_courts} courts)")


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.option("--csv", "csv_path", required=True, help="CSV with columns name,player1,player2")
@click.pass_context
def import_teams(ctx, tournament_id: int, csv_path: str):
    """Import teams from a CSV file."""
    from courtside.io_csv import import_teams_csv

    _, service, _ = _services(ctx)
    with _abort_on_error():
        click.echo(f"[INFO] Reading CSV file: {csv_path}")
        teams = import_teams_csv(csv_path)
        if not teams:
            click.echo("[WARNING] No teams found in file")
            return
        created = service.add_teams(tournament_id, teams)
    click.echo(f"[SUCCESS] Imported {len(created)} teams")


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.option("--name", required=True, help="Team name")
@click.option("--player1", required=True, help="First player")
@click.option("--player2", required=True, help="Second player")
@click.pass_context
def add_team(ctx, tournament_id: int, name: str, player1: str, player2: str):
    """Register a team."""
    _, service, _ = _services(ctx)
    with _abort_on_error():
        team = service.add_team(tournament_id, name, player1, player2)
    click.echo(f"[SUCCESS] Team #{team.team_number} {team.name} registered (id {team.id})")


@cli.command()
@click.option("--team", "team_id", type=int, required=True, help="Team ID")
@click.pass_context
def delete_team(ctx, team_id: int):
    """Delete a team that has no matches."""
    _, service, _ = _services(ctx)
    with _abort_on_error():
        service.delete_team(team_id)
    click.echo(f"[SUCCESS] Team {team_id} deleted")


# ============================================================================
# Seed round
# ============================================================================


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.option("--matches-per-team", type=int, default=None, help="Override seed matches per team")
@click.pass_context
def generate_seed(ctx, tournament_id: int, matches_per_team: int):
    """Generate (or regenerate) the seed round."""
    import random

    cfg, service, _ = _services(ctx)
    with _abort_on_error():
        schedule = service.generate_seed_round(
            tournament_id,
            matches_per_team=matches_per_team,
            rng=random.Random(cfg["random_seed"]),
        )

    click.echo(
        f"[SUCCESS] Generated {len(schedule.pairings)} seed matches "
        f"({schedule.matches_per_team} per team)"
    )
    if schedule.shortfall:
        names = _team_names(service, tournament_id)
        click.echo("[WARNING] Some teams got fewer matches than requested:")
        for team_id, count in schedule.shortfall.items():
            click.echo(f"     {names.get(team_id, team_id)}: {count}")


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.pass_context
def clear_seed(ctx, tournament_id: int):
    """Delete all seed matches."""
    _, service, _ = _services(ctx)
    with _abort_on_error():
        deleted = service.clear_seed_round(tournament_id)
    click.echo(f"[SUCCESS] Deleted {deleted} seed matches")


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.pass_context
def leaderboard(ctx, tournament_id: int):
    """Show the seed round ranking by point differential."""
    _, service, _ = _services(ctx)
    with _abort_on_error():
        rankings = service.get_leaderboard(tournament_id)

    click.echo(f"{'#':>3}  {'Team':<30} {'MP':>3} {'PF':>5} {'PA':>5} {'+/-':>5}")
    for position, entry in enumerate(rankings, start=1):
        click.echo(
            f"{position:>3}  {entry.team_name:<30} {entry.matches_played:>3} "
            f"{entry.points_for:>5} {entry.points_against:>5} {entry.point_differential:>+5d}"
        )


# ============================================================================
# Bracket
# ============================================================================


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.option("--teams", "teams_to_advance", type=int, default=None, help="Teams advancing (default: all ranked)")
@click.pass_context
def generate_bracket(ctx, tournament_id: int, teams_to_advance: int):
    """Generate (or regenerate) the elimination bracket from the leaderboard."""
    _, service, _ = _services(ctx)
    with _abort_on_error():
        bracket = service.generate_bracket(tournament_id, teams_to_advance)
    click.echo(
        f"[SUCCESS] Bracket generated: {bracket.teams_advancing} teams, size {bracket.bracket_size}, "
        f"{bracket.rounds} rounds, {bracket.bye_count} byes"
    )


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.pass_context
def show_bracket(ctx, tournament_id: int):
    """Print the bracket round by round."""
    from courtside.bracket import round_label

    _, service, _ = _services(ctx)
    with _abort_on_error():
        matches = service.get_bracket(tournament_id)
        names = _team_names(service, tournament_id)

    if not matches:
        click.echo("No bracket yet")
        return

    rounds = max(m.round for m in matches)
    current_round = None
    for match in matches:
        if match.round != current_round:
            current_round = match.round
            click.echo(f"\n{round_label(current_round, rounds)}")

        team_a = names.get(match.team_a_id, "BYE" if current_round == 1 else "TBD")
        team_b = names.get(match.team_b_id, "BYE" if current_round == 1 else "TBD")
        line = f"  [{match.id}] {team_a} vs {team_b}"
        if match.completed_at is not None:
            line += f"  {match.team_a_score}-{match.team_b_score}"
        elif match.scheduled_court is not None:
            line += f"  (court {match.scheduled_court})"
        click.echo(line)


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.pass_context
def clear_bracket(ctx, tournament_id: int):
    """Delete the bracket."""
    _, service, _ = _services(ctx)
    with _abort_on_error():
        deleted = service.clear_bracket(tournament_id)
    click.echo(f"[SUCCESS] Deleted {deleted} bracket matches")


# ============================================================================
# Courts
# ============================================================================


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.pass_context
def courts(ctx, tournament_id: int):
    """Show court status (with court ids) and matches waiting for a court."""
    _, service, scheduler = _services(ctx)
    with _abort_on_error():
        statuses = scheduler.get_court_status(tournament_id)
        waiting = scheduler.get_assignable_matches(tournament_id)
        names = _team_names(service, tournament_id)

    for status in statuses:
        if status.is_available:
            click.echo(f"  #{status.court_id} {status.label}: available")
        else:
            click.echo(
                f"  #{status.court_id} {status.label}: [{status.match_id}] "
                f"{names.get(status.team_a_id)} vs {names.get(status.team_b_id)}"
            )

    click.echo(f"\n{len(waiting)} matches waiting")
    for match in waiting:
        click.echo(f"  [{match.id}] {names.get(match.team_a_id)} vs {names.get(match.team_b_id)}")


@cli.command()
@click.option("--match", "match_id", required=True, help="Match ID")
@click.option("--court", "court_number", type=int, required=True, help="Court number")
@click.pass_context
def assign_court(ctx, match_id: str, court_number: int):
    """Put a match on a court."""
    _, _, scheduler = _services(ctx)
    with _abort_on_error():
        scheduler.assign_court(_parse_match_id(match_id), court_number)
    click.echo(f"[SUCCESS] Match {match_id} assigned to court {court_number}")


@cli.command()
@click.option("--match", "match_id", required=True, help="Match ID")
@click.pass_context
def unassign_court(ctx, match_id: str):
    """Take a match off its court."""
    _, _, scheduler = _services(ctx)
    with _abort_on_error():
        scheduler.unassign_court(_parse_match_id(match_id))
    click.echo(f"[SUCCESS] Match {match_id} unassigned")


@cli.command()
@click.option("--match", "match_id", required=True, help="Match ID")
@click.option("--score-a", type=int, required=True, help="Team A score")
@click.option("--score-b", type=int, required=True, help="Team B score")
@click.pass_context
def report_score(ctx, match_id: str, score_a: int, score_b: int):
    """Record a final score (frees the court, advances bracket winners)."""
    _, _, scheduler = _services(ctx)
    with _abort_on_error():
        scheduler.report_score(_parse_match_id(match_id), score_a, score_b)
    click.echo(f"[SUCCESS] Match {match_id}: {score_a}-{score_b}")


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.pass_context
def add_court(ctx, tournament_id: int):
    """Add a court after the highest numbered one."""
    _, _, scheduler = _services(ctx)
    with _abort_on_error():
        court = scheduler.add_court(tournament_id)
    click.echo(f"[SUCCESS] Added court {court.number}")


@cli.command()
@click.option("--tournament", "tournament_id", type=int, required=True, help="Tournament ID")
@click.pass_context
def remove_court(ctx, tournament_id: int):
    """Remove the highest numbered court (must be free)."""
    _, _, scheduler = _services(ctx)
    with _abort_on_error():
        remaining = scheduler.remove_court(tournament_id)
    click.echo(f"[SUCCESS] Court removed, {remaining} courts left")


@cli.command()
@click.option("--court", "court_id", type=int, required=True, help="Court ID (the #id shown by `courts`)")
@click.option("--name", default="", help="New label (empty to reset)")
@click.pass_context
def rename_court(ctx, court_id: int, name: str):
    """Rename a court."""
    _, _, scheduler = _services(ctx)
    with _abort_on_error():
        court = scheduler.rename_court(court_id, name)
    click.echo(f"[SUCCESS] Court {court.number} is now '{court.to_model().label}'")


if __name__ == "__main__":
    cli()

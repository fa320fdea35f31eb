"""CSV import of team rosters."""

import csv
from pathlib import Path

from courtside.models import Team

REQUIRED_COLUMNS = ["name", "player1", "player2"]


class CSVImportError(Exception):
    """Error during CSV import."""
    pass


def validate_team_row(row: dict, row_num: int) -> dict:
    """Validate a team row from CSV.

    Args:
        row: Dictionary with CSV columns
        row_num: Row number for error messages

    Returns:
        Validated dictionary with cleaned data

    Raises:
        CSVImportError: If validation fails
    """
    errors = []
    for field in REQUIRED_COLUMNS:
        if not (row.get(field) or "").strip():
            errors.append(f"Missing required field '{field}'")

    if errors:
        raise CSVImportError(f"Row {row_num}: {', '.join(errors)}")

    return {field: row[field].strip() for field in REQUIRED_COLUMNS}


def import_teams_csv(csv_path: str) -> list[Team]:
    """Import teams from CSV file.

    CSV format:
        name,player1,player2
        Dink Dynasty,Ana Lopez,Sam Reed

    Args:
        csv_path: Path to CSV file

    Returns:
        List of Team objects (id=0) ready to be saved to database

    Raises:
        CSVImportError: If file not found, columns are missing, a row is
            incomplete or a team name repeats
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise CSVImportError(f"CSV file not found: {csv_path}")

    teams = []
    seen_names = set()

    with open(csv_file, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)

        header = [h.strip() for h in (reader.fieldnames or [])]
        missing = [c for c in REQUIRED_COLUMNS if c not in header]
        if missing:
            raise CSVImportError(f"Missing required columns: {', '.join(missing)}")
        reader.fieldnames = header

        # Row 1 is the header
        for row_num, row in enumerate(reader, start=2):
            validated = validate_team_row(row, row_num)

            key = validated["name"].lower()
            if key in seen_names:
                raise CSVImportError(f"Row {row_num}: Duplicate team name '{validated['name']}'")
            seen_names.add(key)

            teams.append(Team(id=0, **validated))

    return teams

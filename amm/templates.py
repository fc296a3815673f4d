"""
Market templates for fantasy leagues.

Weight suppliers turn outside signals (projected points, standings) into
an opening probability vector summing to 1. Factories pair a supplier with
sensible outcomes, liquidity and closing time and hand the result to
lifecycle.create_market.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from amm.lifecycle import create_market
from amm.models import Market, MarketType, Outcome, utc_now


# Projection-based lines are pulled this far toward an even split.
PROJECTION_SHRINK = 0.2

LEAGUE_WINNER_DEFAULT_WINDOW = timedelta(days=120)
SHORT_MARKET_WINDOW = timedelta(days=3)

PROP_LABELS = {
    "points": "Fantasy Points",
    "touchdowns": "Touchdowns",
    "yards": "Yards",
}


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    wins: int = 0
    losses: int = 0
    projected_points: float = 0.0


# ---------------------------------------------------------------------------
# Weight suppliers
# ---------------------------------------------------------------------------

def equal_weights(n: int) -> list[float]:
    if n < 1:
        raise ValueError(f"need at least one outcome, got {n}")
    return [1.0 / n] * n


def projection_weights(projected_a: float, projected_b: float,
                       shrink: float = PROJECTION_SHRINK) -> list[float]:
    """
    Head-to-head line from projected scores.

    p_a = a / (a + b), or 0.5 with no projections, then shrunk toward
    0.5 to account for weekly variance.
    """
    total = projected_a + projected_b
    p_a = projected_a / total if total > 0 else 0.5
    p_a = p_a * (1 - shrink) + 0.5 * shrink
    return [p_a, 1 - p_a]


def standings_weights(wins: Sequence[int]) -> list[float]:
    """(wins + 1) / Σ(wins + 1). The +1 keeps winless teams priced."""
    if not wins:
        raise ValueError("need at least one team")
    smoothed = [w + 1 for w in wins]
    total = sum(smoothed)
    return [w / total for w in smoothed]


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def matchup_market(matchup_id: str, team_a: Team, team_b: Team,
                   week: int, season: str, kickoff: datetime,
                   league_id: Optional[str] = None,
                   liquidity_parameter: float = 100) -> Market:
    """Who wins this week's head-to-head. Closes at kickoff."""
    return create_market(
        title=f"{team_a.name} vs {team_b.name}",
        description=f"Week {week} matchup. Who will win?",
        outcomes=[
            Outcome(id=t.id, label=t.name,
                    description=f"Projected: {t.projected_points:.1f} pts")
            for t in (team_a, team_b)
        ],
        probabilities=projection_weights(
            team_a.projected_points, team_b.projected_points),
        liquidity_parameter=liquidity_parameter,
        closes_at=kickoff,
        market_type=MarketType.MATCHUP,
        league_id=league_id,
        reference_type="matchup",
        reference_id=matchup_id,
        week=week,
        season=season,
    )


def league_winner_market(league_id: str, league_name: str,
                         teams: Sequence[Team], season: str,
                         season_end: Optional[datetime] = None,
                         liquidity_parameter: float = 200) -> Market:
    """League champion, priced off current standings."""
    return create_market(
        title=f"{league_name} Champion",
        description=f"Who will win the {league_name} championship?",
        outcomes=[
            Outcome(id=t.id, label=t.name,
                    description=f"Record: {t.wins}-{t.losses}")
            for t in teams
        ],
        probabilities=standings_weights([t.wins for t in teams]),
        liquidity_parameter=liquidity_parameter,
        closes_at=season_end or utc_now() + LEAGUE_WINNER_DEFAULT_WINDOW,
        market_type=MarketType.LEAGUE_WINNER,
        league_id=league_id,
        reference_type="league",
        reference_id=league_id,
        season=season,
    )


def weekly_high_score_market(league_id: str, teams: Sequence[Team],
                             week: int, season: str,
                             liquidity_parameter: float = 100) -> Market:
    """Which team posts the week's top score. Opens at equal weights."""
    return create_market(
        title=f"Week {week} High Score",
        description=(f"Which team will score the most points "
                     f"in Week {week}?"),
        outcomes=[
            Outcome(id=t.id, label=t.name,
                    description=f"Projected: {t.projected_points:.1f} pts")
            for t in teams
        ],
        probabilities=equal_weights(len(teams)),
        liquidity_parameter=liquidity_parameter,
        closes_at=utc_now() + SHORT_MARKET_WINDOW,
        market_type=MarketType.WEEKLY_HIGH_SCORE,
        league_id=league_id,
        reference_type="league",
        reference_id=league_id,
        week=week,
        season=season,
    )


def player_prop_market(player_id: str, player_name: str, player_team: str,
                       line: float, prop_type: str, week: int, season: str,
                       liquidity_parameter: float = 50) -> Market:
    """Over/under on a player stat line. prop_type: points, touchdowns, yards."""
    if prop_type not in PROP_LABELS:
        raise ValueError(f"unknown prop type: {prop_type}")
    label = PROP_LABELS[prop_type]
    unit = label.lower()
    return create_market(
        title=f"{player_name} {label} O/U {line}",
        description=(f"Will {player_name} ({player_team}) score over or "
                     f"under {line} {unit} in Week {week}?"),
        outcomes=[
            Outcome(id="over", label=f"Over {line}",
                    description=f"{player_name} scores more than {line} {unit}"),
            Outcome(id="under", label=f"Under {line}",
                    description=f"{player_name} scores {line} or fewer {unit}"),
        ],
        probabilities=equal_weights(2),
        liquidity_parameter=liquidity_parameter,
        closes_at=utc_now() + SHORT_MARKET_WINDOW,
        market_type=MarketType.PLAYER_PROP,
        reference_type="player",
        reference_id=player_id,
        week=week,
        season=season,
    )

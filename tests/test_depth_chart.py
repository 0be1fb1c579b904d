from nhl_goalbot.data.depth_chart import (
    MatchupHints,
    find_matchup_start,
    goalie_names_in_block,
    opposing_from_game_json,
    parse_opposing_starter,
    visible_text,
)

PAGE = (
    "<html><head><script>var x = 'Washington Capitals';</script></head><body>"
    "<div>Starting Goalies</div>"
    "<div>Boston Bruins at New York Rangers</div><div>#35 Jeremy Swayman CONFIRMED</div>"
    "<div>#31 Igor Shesterkin PROJECTED</div>"
    "<div>Montreal Canadiens at Washington Capitals</div>"
    "<div>#35 Sam Montembeault CONFIRMED</div>"
    "<div>#79 Charlie Lindgren PROJECTED</div>"
    "</body></html>"
)


def test_visible_text_drops_scripts():
    text = visible_text(PAGE)
    assert "var x" not in text
    assert "Montreal Canadiens at Washington Capitals" in text


def test_opposing_starter_by_side():
    home = MatchupHints.for_game("WSH", "MTL", subject_home=True)
    assert parse_opposing_starter(PAGE, home) == "Sam Montembeault"
    # Flip sides: subject listed second means the first name is the subject's own goalie
    away = MatchupHints.for_game("MTL", "WSH", subject_home=False)
    assert parse_opposing_starter(PAGE, away) == "Charlie Lindgren"


def test_unrelated_matchup_not_used():
    hints = MatchupHints.for_game("WSH", "TOR", subject_home=True)
    assert parse_opposing_starter(PAGE, hints) is None
    assert parse_opposing_starter("", hints) is None


def test_abbreviations_are_case_sensitive():
    hints = MatchupHints.for_game("WSH", "MTL", subject_home=True)
    assert find_matchup_start("MTL @ WAS", hints) == 0
    assert find_matchup_start("mtl @ was", hints) is None


def test_status_words_stripped_from_names():
    block = "#35 Sam Montembeault CONFIRMED #79 Charlie Lindgren Projected"
    assert goalie_names_in_block(block) == ["Sam Montembeault", "Charlie Lindgren"]


def test_embedded_json_by_game_id():
    raw = 'prefix 2025020940 {"home":{"lastName":"Dobes"},"away":{"lastName":"Lindgren"}}'
    assert opposing_from_game_json(raw, 2025020940, subject_home=False) == "Dobes"
    assert opposing_from_game_json(raw, 2025020940, subject_home=True) == "Lindgren"
    assert opposing_from_game_json(raw, 2025020941, subject_home=True) is None
    assert opposing_from_game_json(raw, 0, subject_home=True) is None


def test_embedded_json_escaped():
    raw = '"{\\"gameId\\":2025020940,\\"home\\":{\\"lastName\\":\\"Dobes\\"},\\"away\\":{\\"lastName\\":\\"Lindgren\\"}}"'
    assert opposing_from_game_json(raw, 2025020940, subject_home=False) == "Dobes"


def test_game_json_wins_over_text():
    page = PAGE + '<script>{"id":2025020940,"h":{"lastName":"Dobes"},"a":{"lastName":"Lindgren"}}</script>'
    hints = MatchupHints.for_game("WSH", "MTL", subject_home=False, game_id=2025020940)
    assert parse_opposing_starter(page, hints) == "Dobes"

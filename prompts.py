"""Prompt templates sent verbatim to the model."""
import json
from typing import Any, Dict, List, Optional

RUBRICS = {
    "team": """
    ELITE COORDINATOR DIAGNOSTICS:
    1. SITUATION: Down & Distance tendencies, Field Position (Red Zone vs Open Field).
    2. PRE-SNAP: Formational Tells (RB depth/width), Motion leverage, OL Stance (Heavy vs Light hands).
    3. SCHEME: Identify Concept (Mesh, Dagger, Duo) vs Coverage Shell (MOFO/MOFC).
    4. POST-SNAP: Identify the 'Conflict Player' in a bind. Who is the weak link?
    5. EXECUTION: Success Rate & Efficiency Grade.""",
    "qb": "MECHANICS: Base width, Kinetic Chain (Hips before Shoulder), Elbow height, Release time (<0.4s). EYE DISCIPLINE: Manipulating safeties vs Staring down targets.",
    "rb": "VISION: Pressing the hole, Cutback lanes, Pad Level (Hammer vs Nail). PASS PRO: Scanning inside-out, Sturdy base.",
    "wr": "ROUTE TECH: Release vs Press, Stacking the DB, Stem leverage, Sinking hips at break point, Late Hands catch technique.",
    "te": "HYBRID PLAY: In-line blocking leverage (Power step), Seam recognition in Zone, Catching in traffic.",
    "ol": "TRENCH WARFARE: First step explosiveness (no bucket steps), Punch timing, Anchor vs Bull Rush, Hand placement.",
    "dl": "DISRUPTION: Get-off speed (snap anticipation), Hand combat (Swipe/Rip/Swim), Gap integrity vs Peeking.",
    "lb": "SECOND LEVEL: Read steps (False steps?), Flow/Scrape over blocks, Shock & Shed technique, Coverage depth.",
    "cb": "ISLAND DEFENSE: Press technique (Opening the gate too early), Phase maintenance, Eye discipline (Receiver hips vs QB eyes).",
    "s": "LAST LINE: Pursuit angles (Inside-Out), Range from hash-to-sideline, Disguising coverages, Alley filling.",
    "kp": "SPECIALISTS: Approach rhythm, Plant foot depth, Contact sweet-spot, Follow-through balance.",
    "general": "INTANGIBLES: Motor/Effort, Football IQ, Situational Awareness, Speed.",
}

OUTPUT_TEMPLATE = """
    OUTPUT JSON (Strict Format):
    {
        "title": "Play Title",
        "data": { "o_formation": "Set", "d_formation": "Shell" },
        "tactical_breakdown": {
            "concept": "Scheme",
            "box_count": "Count",
            "coverage_shell": "Cover X",
            "key_matchup": "1v1"
        },
        "scouting_report": {
            "summary": "Narrative. If a specific Rule was violated, mention it explicitly in CAPS.",
            "timeline": [{ "time": "0:00", "type": "Phase", "text": "Obs" }],
            "coaching_prescription": {
                "fix": "Technical fix",
                "drill": "Specific Drill Name",
                "pro_tip": "Tip"
            },
            "report_card": { "football_iq": "B", "technique": "C", "effort": "A", "overall": "B" }
        },
        "players_detected": [ { "identifier": "Name", "position": "Pos", "grade": "B", "observation": "Note", "weakness": "Weak" } ]
    }"""


def rules_context(rules: Optional[Dict[str, str]]) -> str:
    if not rules:
        return ""
    lines = ["", "COORDINATOR RULES TO ENFORCE:"]
    for position, rule in rules.items():
        lines.append(f"- {position.upper()}: {rule}")
    return "\n".join(lines) + "\n"


def playbook_context(playbook: Optional[Dict[str, Any]]) -> str:
    if not playbook or not playbook.get("name"):
        return ""
    return f"\nREFERENCE PLAYBOOK: {playbook['name']} (Assume standard concepts apply unless specified)."


def roster_summary(roster: List[Dict[str, Any]]) -> str:
    return "\n".join(
        f"{p.get('identifier')}: {', '.join(p.get('weaknesses') or [])}" for p in roster
    )


def analysis_prompt(position: str, rules: str, playbook: str, roster: List[Dict[str, Any]]) -> str:
    role = "NFL Coordinator" if position == "team" else "Elite Position Coach"
    focus = RUBRICS.get(position, RUBRICS["team"])
    return f"""
    ROLE: {role}.
    TASK: Analyze video clip. Focus: {focus}.

    {rules}
    {playbook}

    ROSTER CONTEXT:
    {roster_summary(roster)}
{OUTPUT_TEMPLATE}"""


def clip_chat_prompt(
    full_data: Dict[str, Any],
    roster: List[Dict[str, Any]],
    chat_history: List[Dict[str, Any]],
    message: str,
) -> str:
    history = "\n".join(f"{h.get('role', '').upper()}: {h.get('text', '')}" for h in chat_history)
    return f"""
    ROLE: Elite Football Coordinator.
    CONTEXT: Clip Analysis.
    CLIP DATA: {json.dumps(full_data, default=str)}
    ROSTER: {json.dumps(roster, default=str)}
    HISTORY: {history}
    QUESTION: "{message}"
    INSTRUCTION: Concise, professional answer. Use **bold** for emphasis.
    """


def coach_chat_prompt(rules: str, message: str) -> str:
    return f"ROLE: NFL Coach.\nCONTEXT: {rules}\nUSER: {message}"

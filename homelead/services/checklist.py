# homelead/services/checklist.py
from __future__ import annotations

import copy
from typing import Any, Dict, List


def _phase(name: str, ref: str, *items: tuple) -> Dict[str, Any]:
    return {"name": name, "items": [{"title": t, "detail": d, "ref": ref} for t, d in items]}


CHECKLIST_TEMPLATE: List[Dict[str, Any]] = [
    _phase(
        "First response (inquiry)", "DAY3",
        ("Record the inquiry accurately", "Name, contact details, wishes and inquiry channel"),
        ("First reply (target: within 5 minutes)", "Introduce yourself and propose the next step"),
        ("Gauge the customer's temperature", "Purchase timing, urgency, other agents being considered"),
        ("Outline the wish list", "Area, price range, layout and must-haves"),
        ("Register the customer in the CRM", "Start managing the customer record"),
        ("Set the next action", "Propose a meeting date or agree the next contact day"),
        ("Send a thank-you email", "Thank them for the inquiry and attach something useful"),
    ),
    _phase(
        "Meeting and viewing preparation", "DAY4",
        ("Research the customer beforehand", "Prepare a proposal from job, income estimate and family"),
        ("Check market prices in the target area", "Recent transactions, price trend and outlook"),
        ("Shortlist 3-5 candidate properties", "Pick properties that match the wish list"),
        ("Prepare property materials", "Floor plans, photos and neighbourhood information"),
        ("Run a mortgage pre-simulation", "Loan amount, monthly payment, fixed vs variable"),
        ("Confirm venue or online setup", "Book the room or send the meeting URL"),
        ("Write the agenda", "Flow of the meeting, questions and proposals"),
        ("Send a reminder", "Reminder email or message the day before"),
    ),
    _phase(
        "First consultation", "DAY5",
        ("Introduce yourself and the service", "Strengths, track record and support"),
        ("Dig into the purchase motive", "Why now, and what is behind it"),
        ("Explain the funding plan outline", "The full picture of purchase costs"),
        ("Hear the life plan", "Family plans, job changes, schooling"),
        ("Explain the purchase process", "Search, viewing, application, contract, settlement"),
        ("Prioritise the conditions", "Separate MUST from WANT"),
        ("Share meeting notes", "Summarise the conversation and send it to the customer"),
    ),
    _phase(
        "Needs hearing", "DAY5",
        ("Pain points of the current home", "What they want to improve"),
        ("Picture of the ideal life", "Weekends, commute, child-raising environment"),
        ("Non-negotiable conditions", "Location, layout and facility must-haves"),
        ("Points they can compromise on", "Low-priority conditions that widen the options"),
        ("Confirm household income and savings", "Needed for a safe budget"),
        ("Mortgage pre-screening status", "Screened, not started, or concerns"),
        ("Confirm the decision maker", "Who decides and what the family thinks"),
    ),
    _phase(
        "Property viewings", "DAY6",
        ("Schedule viewings", "An efficient route over 3-5 candidates"),
        ("List pros and cons of each property", "Objective comparison against the wish list"),
        ("Walk the neighbourhood", "Supermarket, school, hospital, station"),
        ("Explain viewing checkpoints", "Structure, facilities and sunlight"),
        ("Collect impressions after viewing", "What they liked and what bothered them"),
        ("Propose additional properties", "New candidates based on feedback"),
    ),
    _phase(
        "Presentation and proposal", "DAY7",
        ("Narrow down to the final candidates", "Two or three properties together with the customer"),
        ("Detailed funding plan", "Price, fees and loan simulation"),
        ("Mortgage comparison", "Rates, terms and screening criteria per lender"),
        ("Future value analysis", "Area development and asset value outlook"),
        ("Explain the risks", "Purchase risks and how to handle them"),
        ("Decision support", "Organise the open questions and give material to decide"),
    ),
    _phase(
        "Purchase procedure", "DAY8",
        ("Explain the purchase application", "What it binds and whether it can be cancelled"),
        ("Explain the deposit", "Typical amount, timing and refund conditions"),
        ("Full mortgage screening", "Required documents, timeline and cautions"),
        ("Preview the disclosure statement", "What will be explained and what to check"),
    ),
    _phase(
        "Disclosure and contract", "DAY8",
        ("Send the disclosure statement in advance", "Give time to read before the meeting"),
        ("Walk through the disclosure statement", "Answer every question before signing"),
        ("Review the sales contract", "Special terms, penalties and loan contingency"),
        ("Sign the contract and pay the deposit", "Confirm the receipt and copies"),
    ),
    _phase(
        "Settlement and handover", "DAY9",
        ("Sign the mortgage agreement", "Final loan terms and repayment schedule"),
        ("Final walkthrough", "Check defects and included equipment"),
        ("Settlement and registration", "Payment, title transfer and key handover"),
        ("Moving support", "Utilities, address change and movers"),
    ),
    _phase(
        "After-sale follow-up", "DAY10",
        ("Thank-you message after handover", "Thank them and share contacts for questions"),
        ("One-month check-in", "Ask how life in the new home is going"),
        ("Tax deduction reminder", "Mortgage deduction filing for the first year"),
        ("Ask for referrals and reviews", "Only once the customer is satisfied"),
    ),
    _phase(
        "Nurturing undecided customers", "DAY11",
        ("Regular information updates", "New listings and market news that fit them"),
        ("Periodic check-in", "Has anything changed in their situation?"),
        ("Share useful articles", "Content matching their stage and concerns"),
        ("Re-propose when conditions change", "Rates, prices or family changes"),
    ),
]


def template() -> List[Dict[str, Any]]:
    return copy.deepcopy(CHECKLIST_TEMPLATE)


def fresh_checklist() -> List[Dict[str, Any]]:
    """A per-customer checklist with every item unchecked."""
    return [
        {**phase, "items": [{**item, "checked": False, "customized": ""} for item in phase["items"]]}
        for phase in template()
    ]


def progress(checklist: List[Dict[str, Any]] | None) -> tuple:
    done = total = 0
    for phase in checklist or []:
        for item in phase.get("items") or []:
            total += 1
            if item.get("checked"):
                done += 1
    return done, total

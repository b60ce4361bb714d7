from __future__ import annotations

import logging
import re
import uuid

from examsim.schemas.exam import Question

log = logging.getLogger(__name__)

PROCEDURAL_COUNT = 10
OFFLINE_EXPLANATION = (
    "This is a procedurally generated offline placeholder. Reconnect to the question service for live questions."
)


def _q(id: str, text: str, options: list[str], correct: int, explanation: str) -> Question:
    return Question(id=id, text=text, options=options, correct_answer=correct, explanation=explanation)


_ABCD = ["A", "B", "C", "No error"]

ENGLISH_ERRORS: tuple[Question, ...] = (
    _q(
        "vault-eng-1",
        "Identify the error: 'The reason why he was rejected (A) / was because he was too young (B) / for the job. (C) / No error'",
        _ABCD,
        1,
        "Remove 'because': 'The reason ... was that ...'.",
    ),
    _q(
        "vault-eng-2",
        "Identify the error: 'Unless you do not give (A) / the keys of the safe (B) / you will be shot. (C) / No error'",
        _ABCD,
        0,
        "Remove 'do not'; 'unless' is already negative.",
    ),
    _q(
        "vault-eng-3",
        "Identify the error: 'He is one of the best mothers (A) / that has ever lived (B) / on this earth. (C) / No error'",
        _ABCD,
        1,
        "Replace 'has' with 'have'; the antecedent 'mothers' is plural.",
    ),
    _q(
        "vault-eng-4",
        "Identify the error: 'Scarcely had the function started (A) / than it began to rain (B) / heavily. (C) / No error'",
        _ABCD,
        1,
        "Replace 'than' with 'when'; 'scarcely' pairs with 'when'.",
    ),
    _q(
        "vault-eng-5",
        "Identify the error: 'Neither of the two candidates (A) / have been selected (B) / for the post. (C) / No error'",
        _ABCD,
        1,
        "Replace 'have' with 'has'; 'neither' takes a singular verb.",
    ),
)

POLITY: tuple[Question, ...] = (
    _q(
        "vault-pol-1",
        "Which Schedule of the Constitution of India contains the provisions on anti-defection?",
        ["Second Schedule", "Fifth Schedule", "Eighth Schedule", "Tenth Schedule"],
        3,
        "The Tenth Schedule was added by the 52nd Amendment Act, 1985.",
    ),
    _q(
        "vault-pol-2",
        "The 'Basic Structure' doctrine was propounded by the Supreme Court in which case?",
        ["Golaknath case", "Kesavananda Bharati case", "Minerva Mills case", "Maneka Gandhi case"],
        1,
        "Kesavananda Bharati v. State of Kerala (1973) established the doctrine.",
    ),
    _q(
        "vault-pol-3",
        "Who appoints the Chairman of the Public Accounts Committee?",
        ["President of India", "Prime Minister", "Speaker of Lok Sabha", "Chairman of Rajya Sabha"],
        2,
        "The Speaker of the Lok Sabha appoints the PAC Chairman.",
    ),
    _q(
        "vault-pol-4",
        "Which Article of the Constitution deals with the pardoning power of the President?",
        ["Article 72", "Article 74", "Article 61", "Article 123"],
        0,
        "Article 72 empowers the President to grant pardons, reprieves and remissions.",
    ),
    _q(
        "vault-pol-5",
        "A Money Bill can be introduced in a State Legislature only on the recommendation of:",
        ["The Speaker", "The Chief Minister", "The Governor", "The Finance Minister"],
        2,
        "Prior recommendation of the Governor is required for Money Bills in a State.",
    ),
)

MATHEMATICS: tuple[Question, ...] = (
    _q(
        "vault-math-1",
        "If log 2 = 0.3010, how many digits does 2^64 have?",
        ["18", "19", "20", "21"],
        2,
        "log(2^64) = 64 x 0.3010 = 19.264; the characteristic is 19, so the number has 20 digits.",
    ),
    _q(
        "vault-math-2",
        "The value of sin²1° + sin²5° + sin²9° + ... + sin²89° is:",
        ["11.5", "11", "12", "12.5"],
        0,
        "23 terms; pairs sin²x + sin²(90°-x) give 11, plus sin²45° = 0.5.",
    ),
    _q(
        "vault-math-3",
        "A sphere of radius r is inscribed in a cube. The ratio of the volume of the cube to that of the sphere is:",
        ["6 : π", "3 : π", "4 : 3", "2 : 1"],
        0,
        "Cube side 2r gives 8r³; sphere is (4/3)πr³; the ratio is 6 : π.",
    ),
    _q(
        "vault-math-4",
        "A can finish a work in 10 days and B in 15 days. Working together they finish it in:",
        ["5 days", "6 days", "8 days", "7 days"],
        1,
        "1/10 + 1/15 = 1/6, so 6 days.",
    ),
    _q(
        "vault-math-5",
        "What is the remainder when 2^31 is divided by 5?",
        ["1", "2", "3", "4"],
        2,
        "Powers of 2 mod 5 cycle with period 4; 31 mod 4 = 3 and 2³ = 8 leaves 3.",
    ),
)

HISTORY: tuple[Question, ...] = (
    _q(
        "vault-hist-1",
        "Who founded the 'Servants of India Society'?",
        ["Bal Gangadhar Tilak", "Gopal Krishna Gokhale", "Lala Lajpat Rai", "Dadabhai Naoroji"],
        1,
        "Gopal Krishna Gokhale founded it in Pune in 1905.",
    ),
    _q(
        "vault-hist-2",
        "The 'Doctrine of Lapse' was introduced by:",
        ["Lord Wellesley", "Lord Curzon", "Lord Dalhousie", "Lord Canning"],
        2,
        "Lord Dalhousie applied the Doctrine of Lapse.",
    ),
    _q(
        "vault-hist-3",
        "Which Harappan site had a dockyard?",
        ["Harappa", "Mohenjodaro", "Lothal", "Kalibangan"],
        2,
        "Lothal in Gujarat had a dockyard.",
    ),
    _q(
        "vault-hist-4",
        "In which year was the Quit India Movement launched?",
        ["1940", "1941", "1942", "1943"],
        2,
        "It was launched on 8 August 1942.",
    ),
    _q(
        "vault-hist-5",
        "Who was known as the 'Frontier Gandhi'?",
        ["Maulana Azad", "Khan Abdul Ghaffar Khan", "Muhammad Ali Jinnah", "Liaquat Ali Khan"],
        1,
        "Khan Abdul Ghaffar Khan led the Khudai Khidmatgar movement.",
    ),
)

GEOGRAPHY: tuple[Question, ...] = (
    _q(
        "vault-geo-1",
        "Which is the longest river of peninsular India?",
        ["Krishna", "Godavari", "Narmada", "Mahanadi"],
        1,
        "The Godavari is the longest peninsular river.",
    ),
    _q(
        "vault-geo-2",
        "The Tropic of Cancer does NOT pass through which of these States?",
        ["Gujarat", "Rajasthan", "Odisha", "Tripura"],
        2,
        "It crosses Gujarat, Rajasthan and Tripura among others, but not Odisha.",
    ),
    _q(
        "vault-geo-3",
        "Which soil is best suited to cotton cultivation?",
        ["Alluvial soil", "Laterite soil", "Red soil", "Black (regur) soil"],
        3,
        "Black soil retains moisture and is ideal for cotton.",
    ),
    _q(
        "vault-geo-4",
        "The Palk Strait separates India from:",
        ["Sri Lanka", "Maldives", "Myanmar", "Indonesia"],
        0,
        "The Palk Strait lies between Tamil Nadu and Sri Lanka.",
    ),
    _q(
        "vault-geo-5",
        "Leaving out K2, which is the highest mountain peak in India?",
        ["Nanda Devi", "Kangchenjunga", "Kamet", "Anamudi"],
        1,
        "Kangchenjunga (8,586 m) on the Sikkim-Nepal border.",
    ),
)

SCIENCE: tuple[Question, ...] = (
    _q(
        "vault-sci-1",
        "Which phenomenon is responsible for the blue colour of the sky?",
        ["Reflection", "Refraction", "Scattering", "Dispersion"],
        2,
        "Rayleigh scattering of sunlight by atmospheric molecules.",
    ),
    _q(
        "vault-sci-2",
        "Which vitamin is essential for blood clotting?",
        ["Vitamin A", "Vitamin B12", "Vitamin K", "Vitamin D"],
        2,
        "Vitamin K is needed to synthesise clotting factors.",
    ),
    _q(
        "vault-sci-3",
        "The pH of human blood is approximately:",
        ["6.4", "7.0", "7.4", "8.2"],
        2,
        "Blood is slightly alkaline, about 7.35 to 7.45.",
    ),
    _q(
        "vault-sci-4",
        "Which non-metal is a liquid at room temperature?",
        ["Mercury", "Bromine", "Chlorine", "Gallium"],
        1,
        "Bromine is the only non-metal that is liquid at room temperature.",
    ),
    _q(
        "vault-sci-5",
        "What is the unit of power of a lens?",
        ["Dioptre", "Lumen", "Lux", "Candela"],
        0,
        "Power of a lens is measured in dioptres.",
    ),
)

# Exact topic ids with a curated bank.
STATIC_BANKS: dict[str, tuple[Question, ...]] = {
    "spotting-errors": ENGLISH_ERRORS,
    "grammar-usage": ENGLISH_ERRORS,
    "constitution-india": POLITY,
    "fundamental-rights": POLITY,
    "union-government": POLITY,
    "state-government": POLITY,
    "number-system": MATHEMATICS,
    "time-work": MATHEMATICS,
    "mensuration": MATHEMATICS,
    "ivc": HISTORY,
    "revolt-1857": HISTORY,
    "gandhian-era": HISTORY,
    "mass-movements": HISTORY,
    "peninsular-river-system": GEOGRAPHY,
    "soils-india": GEOGRAPHY,
    "islands-india": GEOGRAPHY,
    "physics": SCIENCE,
    "chemistry": SCIENCE,
    "biology": SCIENCE,
}

# Broad-category markers, checked in order against the topic id.
CATEGORY_MARKERS: tuple[tuple[tuple[str, ...], tuple[Question, ...]], ...] = (
    (("polity", "pol-", "constitution", "government", "judiciary", "amendment"), POLITY),
    (("hist", "ancient", "medieval", "modern", "mughal", "mauryan", "movement"), HISTORY),
    (("math", "algebra", "geometry", "trigonometry", "percentage", "interest", "ratio"), MATHEMATICS),
    (("geo", "river", "climate", "soil", "mountain", "ocean", "desert", "plateau"), GEOGRAPHY),
    (("economy", "economic", "budget", "inflation", "banking", "fiscal"), POLITY),
    (("eng", "grammar", "error", "sentence"), ENGLISH_ERRORS),
    (("sci", "phys", "chem", "bio"), SCIENCE),
)

PROCEDURAL_STEMS: tuple[str, ...] = (
    "Analyse the significance of {topic} in the contemporary strategic landscape.",
    "Which of the following best defines the core principle of {topic}?",
    "Consider the following statements regarding {topic}: 1. It is fundamental to the system. "
    "2. It has evolved significantly since 2000. Which is correct?",
    "The application of {topic} is most critical in which of the following sectors?",
    "Identify the incorrect statement regarding the historical evolution of {topic}.",
)


def _slug(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (s or "").strip().lower()).strip("-") or "topic"


def _minted(bank: tuple[Question, ...], nonce: str) -> list[Question]:
    return [q.model_copy(update={"id": f"{q.id}-{nonce}"}) for q in bank]


def _match_category(topic_id: str) -> tuple[Question, ...] | None:
    tid = (topic_id or "").strip().lower()
    for markers, bank in CATEGORY_MARKERS:
        if any(m in tid for m in markers):
            return bank
    return None


def _procedural(topic_name: str, nonce: str) -> list[Question]:
    name = (topic_name or "").strip() or "this topic"
    slug = _slug(name)
    out: list[Question] = []
    for i in range(PROCEDURAL_COUNT):
        stem = PROCEDURAL_STEMS[i % len(PROCEDURAL_STEMS)].format(topic=name)
        correct = i % 4
        distractors = [
            f"Secondary factor of {name}",
            f"Tertiary factor of {name}",
            "None of the above",
        ]
        options = distractors[:correct] + [f"Primary factor of {name}"] + distractors[correct:]
        out.append(
            Question(
                id=f"vault-proc-{slug}-{i}-{nonce}",
                text=f"[OFFLINE SIMULATION] {stem}",
                options=options,
                correct_answer=correct,
                explanation=OFFLINE_EXPLANATION,
            )
        )
    return out


def fallback(topic_name: str, topic_id: str) -> list[Question]:
    """Network-free question set for a topic; never empty, never raises."""

    nonce = uuid.uuid4().hex[:8]
    log.warning("engaging offline bank topic=%s topic_id=%s", topic_name, topic_id)

    bank = STATIC_BANKS.get((topic_id or "").strip().lower())
    if bank is not None:
        return _minted(bank, nonce)

    bank = _match_category(topic_id)
    if bank is not None:
        return _minted(bank, nonce)

    return _procedural(topic_name, nonce)

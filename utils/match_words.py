import random
from typing import Dict, List, Optional, Tuple

from models.room import RoundWord

ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
MATCH_PROMPT = "Which spelling is correct?"
MATCH_CATEGORY = "cvc"
DISTRACTOR_COUNT = 2

VOWELS = "aeiou"
CONSONANT_CONFUSIONS: List[Tuple[str, str]] = [
    ("b", "d"), ("p", "b"), ("m", "n"), ("s", "z"), ("f", "v"),
    ("t", "d"), ("g", "k"), ("c", "k"),
]

# difficulty tier -> [(word, baked distractors)]
WORD_BANK: Dict[int, List[Tuple[str, List[str]]]] = {
    1: [
        ("cat", ["kat", "cet", "catt"]),
        ("dog", ["dgo", "dogg", "dag"]),
        ("sun", ["sunn", "son", "sen"]),
        ("hat", ["hatt", "het"]),
        ("pig", ["pigg", "peg", "pug"]),
        ("bed", ["bedd", "bad"]),
    ],
    2: [
        ("frog", ["frogg", "forg", "frag"]),
        ("ship", ["shipp", "sheep", "shep"]),
        ("milk", ["mikl", "melk", "milc"]),
        ("jump", ["jummp", "jomp", "jupm"]),
        ("fish", ["fesh", "fisch", "fishe"]),
        ("clap", ["klap", "clapp", "calp"]),
        ("drum", []),
    ],
    3: [
        ("cake", ["caik", "cayk", "cacke"]),
        ("rain", ["rane", "rayn", "rian"]),
        ("boat", ["bote", "bowt", "baot"]),
        ("night", ["nite", "nigth", "niht"]),
        ("green", ["grean", "grene", "gren"]),
        ("smile", ["smiel", "smyle", "smil"]),
        ("stone", []),
    ],
    4: [
        ("bridge", ["brige", "bridj", "bridg"]),
        ("castle", ["casle", "castel", "cassle"]),
        ("weather", ["wether", "weathre", "whether"]),
        ("thumb", ["thum", "thumm", "thub"]),
        ("laugh", ["laff", "lauf", "lagh"]),
        ("bright", ["brite", "brigth", "briht"]),
    ],
    5: [
        ("friend", ["freind", "frend", "friand"]),
        ("because", ["becuase", "becaus", "becose"]),
        ("believe", ["beleive", "belive", "beleeve"]),
        ("different", ["diffrent", "differant", "difernt"]),
        ("library", ["libary", "librery", "liberry"]),
        ("favourite", ["favorit", "favourit", "faverite"]),
    ],
    6: [
        ("necessary", ["neccessary", "necesary", "neccesary"]),
        ("rhythm", ["rythm", "rhythem", "rhytm"]),
        ("separate", ["seperate", "separete", "seprate"]),
        ("definitely", ["definately", "definitly", "defenitely"]),
        ("embarrass", ["embarass", "embarras", "embaress"]),
        ("conscience", ["consience", "conscence", "concience"]),
    ],
}

def generate_room_code(rng: Optional[random.Random] = None) -> str:
    """Six symbols from an alphabet without I, O, 0 or 1. Uniqueness is not checked."""
    rng = rng or random.Random()
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))

def normalize_room_code(code: str) -> str:
    return code.strip().upper()

def words_for_difficulty(difficulty: int) -> List[Tuple[str, List[str]]]:
    tiers = sorted(WORD_BANK)
    tier = min(max(difficulty, tiers[0]), tiers[-1])
    return WORD_BANK[tier]

def fallback_distractors(correct: str, rng: random.Random) -> List[str]:
    """Misspellings built from vowel swaps, a trailing 'e' and consonant confusions."""
    result: List[str] = []

    def add(candidate: str) -> bool:
        if candidate != correct and candidate not in result:
            result.append(candidate)
            return True
        return False

    for i, char in enumerate(correct):
        if len(result) >= DISTRACTOR_COUNT:
            break
        if char in VOWELS:
            for vowel in VOWELS:
                if vowel != char and add(correct[:i] + vowel + correct[i + 1:]):
                    break

    if len(result) < DISTRACTOR_COUNT:
        if correct.endswith("e") and len(correct) > 2:
            add(correct[:-1])
        else:
            add(correct + "e")

    for i, char in enumerate(correct):
        if len(result) >= DISTRACTOR_COUNT:
            break
        if char in VOWELS or not char.isalpha():
            continue
        for a, b in CONSONANT_CONFUSIONS:
            if char in (a, b):
                replacement = b if char == a else a
                if add(correct[:i] + replacement + correct[i + 1:]):
                    break

    rng.shuffle(result)
    return result[:DISTRACTOR_COUNT]

def pick_distractors(correct: str, baked: List[str], rng: random.Random) -> List[str]:
    if len(baked) >= DISTRACTOR_COUNT:
        return rng.sample(baked, DISTRACTOR_COUNT)
    return fallback_distractors(correct, rng)

def generate_round_word(difficulty: int, rng: random.Random) -> RoundWord:
    word, baked = rng.choice(words_for_difficulty(difficulty))
    options = [word, *pick_distractors(word, baked, rng)]
    rng.shuffle(options)
    return RoundWord(
        word=word,
        prompt=MATCH_PROMPT,
        options=options,
        correct_index=options.index(word),
    )

def round_difficulty(round_index: int) -> int:
    """Difficulty climbs one tier every three rounds."""
    return 2 + round_index // 3

def generate_match_words(count: int, rng: Optional[random.Random] = None) -> List[RoundWord]:
    rng = rng or random.Random()
    return [generate_round_word(round_difficulty(i), rng) for i in range(count)]

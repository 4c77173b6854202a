"""
Domain table for the planning flow.

Every planning domain maps to a fixed, non-empty list of essential fields.
Each field carries its priority weight (higher is asked first), the question
used to ask for it, and the patterns that recognize an explicit statement of
it in user text. New domains are additions to DOMAIN_TABLE, never ad hoc
branches elsewhere.

Patterns always capture the stated value in a group named ``value``.
Place-name patterns are case-sensitive on the value (proper nouns) and
case-insensitive on the surrounding keywords.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from journalmate.modules.planning_state import Domain

# =============================================================================
# Shared pattern fragments
# =============================================================================

_I = re.IGNORECASE

MONTHS = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
WEEKDAYS = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
ORDINAL = r"\d{1,2}(?:st|nd|rd|th)?"
NUMWORD = (
    r"(?:\d+(?:\.\d+)?|an?|one|two|three|four|five|six|seven|eight|nine|ten|eleven"
    r"|twelve|fourteen|a\s+couple\s+of|a\s+few|couple\s+of|few)"
)
PLACE = r"[A-Z][\w'-]*(?:[ ](?:(?:of|de|del|la|le|du)[ ])?[A-Z][\w'-]*)*"
AMOUNT = (
    r"(?:[$€£]\s?\d[\d,]*(?:\.\d{1,2})?(?:\s?k\b)?"
    r"|\d[\d,]*(?:\.\d{1,2})?\s?k?\s?(?:dollars|bucks|usd|eur|euros?|gbp|pounds)\b)"
)
# An amount without a currency ("1500", "2k", "1,200.50")
BARE_NUMBER = r"\d(?:[\d,]*\d)?(?:\.\d{1,2})?(?:\s?k\b)?"
APPROX = r"(?:around|about|roughly|approximately|approx\.?|up\s+to|under|at\s+most|max(?:imum)?)"
COUNT_WORDS: frozenset[str] = frozenset({
    "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten", "eleven",
    "twelve", "fifteen", "twenty",
})

# First words that look like proper nouns but are never places
NON_PLACE_WORDS: frozenset[str] = frozenset({
    "i", "i'm", "im", "i'd", "i'll", "me", "my", "we", "our", "us", "you", "it",
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december",
    "jan", "feb", "mar", "apr", "jun", "jul", "aug", "sep", "sept", "oct", "nov", "dec",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "spring", "summer", "fall", "autumn", "winter", "christmas", "easter",
    "plan", "help", "please", "thanks", "thank", "yes", "no", "yeah", "yep", "nope", "ok", "okay",
    "sure", "great", "perfect", "cool", "fine", "good", "hi", "hello", "hey", "hmm", "nothing",
    "none", "not", "just", "only", "also", "next", "this", "today",
    "tomorrow", "tonight", "weekend", "solo", "alone", "online", "try", "again", "sounds",
})

# Values that appear where a free-text field is expected but say nothing
FILLER_VALUES: frozenset[str] = frozenset({
    "a", "an", "the", "some", "any", "it", "this", "that", "something", "anything",
    "stuff", "things", "plan", "no", "one", "nothing", "none",
})


# =============================================================================
# Field and domain specifications
# =============================================================================

@dataclass(frozen=True)
class FieldSpec:
    """An essential field: how to ask for it and how to recognize it."""

    name: str
    label: str
    question: str
    priority: int
    patterns: tuple[re.Pattern[str], ...]
    # The value must look like a place name (first word checked against NON_PLACE_WORDS)
    place: bool = False
    # Budget-like field; a "no budget" statement is recorded as NO_BUDGET
    budget: bool = False
    # Fields that express a date or a time (used by the hallucination guard)
    temporal: bool = False
    # A bare number answering the question ("4") means a head count
    count: bool = False
    # A short bare phrase answering the question is the value itself
    free_text: bool = False


@dataclass(frozen=True)
class DomainSpec:
    """Essential fields and classification keywords for one domain."""

    domain: Domain
    label: str
    keywords: tuple[str, ...]
    fields: tuple[FieldSpec, ...]
    keyword_pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        alternation = "|".join(re.escape(k).replace(r"\ ", r"\s+") for k in self.keywords)
        object.__setattr__(
            self,
            "keyword_pattern",
            re.compile(rf"\b(?:{alternation})\b", _I) if self.keywords else re.compile(r"(?!x)x"),
        )

    @property
    def field_names(self) -> list[str]:
        return [spec.name for spec in self.fields]

    def fields_by_priority(self) -> list[FieldSpec]:
        """Fields ordered by descending priority, table order breaking ties."""
        indexed = list(enumerate(self.fields))
        indexed.sort(key=lambda pair: (-pair[1].priority, pair[0]))
        return [spec for _, spec in indexed]

    def get_field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None


NO_BUDGET = "none"


def _p(*patterns: str, flags: int = _I) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


def _field(
    name: str,
    label: str,
    question: str,
    priority: int,
    patterns: tuple[re.Pattern[str], ...],
    **kwargs: bool,
) -> FieldSpec:
    return FieldSpec(
        name=name, label=label, question=question, priority=priority, patterns=patterns, **kwargs,
    )


# --- reusable pattern groups --------------------------------------------------

_DATE_PATTERNS = _p(
    rf"\b(?P<value>{MONTHS}\.?\s+{ORDINAL}(?:\s*(?:-|–|to|through|until)\s*(?:{MONTHS}\.?\s+)?{ORDINAL})?)\b",
    rf"\b(?P<value>{ORDINAL}\s+(?:of\s+)?{MONTHS})\b",
    rf"\b(?:in|during|around|for)\s+(?P<value>(?:early\s+|late\s+|mid-?)?{MONTHS})\b",
    rf"\b(?P<value>(?:this|next|coming)\s+(?:week(?:end)?|month|year|{WEEKDAYS}|summer|winter|spring|fall|autumn))\b",
    rf"\b(?:on|this|next|for|until)\s+(?P<value>{WEEKDAYS})\b",
    r"\b(?P<value>tomorrow(?:\s+(?:morning|afternoon|evening|night))?|tonight|today)\b",
    r"\b(?P<value>\d{4}-\d{2}-\d{2})\b",
    r"\b(?P<value>\d{1,2}/\d{1,2}(?:/\d{2,4})?)\b",
)

_TIME_PATTERNS = _p(
    r"\b(?P<value>\d{1,2}(?::\d{2})?\s*(?:am|pm))\b",
    r"\bat\s+(?P<value>\d{1,2}(?::\d{2})?)(?!\s*(?:people|guests|%|percent|\d))\b",
    r"\b(?P<value>(?:for\s+)?(?:breakfast|brunch|lunch|dinner|tonight))\b",
)

_TRIP_LENGTH_PATTERNS = _p(
    rf"(?<!times\s)(?<!twice\s)(?<!once\s)(?<!per\s)(?<!every\s)\b(?P<value>{NUMWORD}[\s-]+(?:days?|nights?|weeks?|months?))\b"
    r"(?!\s+(?:a|per|each|every)\s+(?:week|month|day))",
    r"\bfor\s+(?P<value>(?:a|the)\s+(?:long\s+)?weekend)\b",
    r"\b(?P<value>(?:a\s+)?weekend[\s-](?:trip|getaway))\b",
)

_SESSION_LENGTH_PATTERNS = _p(
    rf"(?<!times\s)(?<!per\s)\b(?P<value>{NUMWORD}[\s-]+(?:hours?|hrs?|minutes?|mins?))\b"
    r"(?!\s+(?:a|per|each|every)\s+(?:week|month|day))",
    r"\b(?P<value>half\s+an\s+hour|an\s+hour\s+and\s+a\s+half)\b",
)

_BUDGET_PATTERNS = _p(
    rf"(?P<value>{AMOUNT})",
    rf"\bbudget(?:\s+(?:is|of|at)\s+|\s*:\s*|\s+)(?:{APPROX}\s+)?(?P<value>{BARE_NUMBER})",
    rf"\b(?P<value>{BARE_NUMBER})\s+(?:total\s+)?budget\b",
    rf"\bspend(?:ing)?\s+(?:{APPROX}\s+)?(?P<value>{BARE_NUMBER})\b"
    r"(?!\s*(?:days?|nights?|weeks?|months?|hours?|hrs?|minutes?|mins?|%|percent))",
    r"\b(?P<value>(?:low|tight|small|modest|medium|moderate|mid-range|high|big|large|generous|luxury)\s+budget)\b",
    r"\b(?P<none>no\s+budget|zero\s+budget|for\s+free|free\s+of\s+charge|no\s+money"
    r"|without\s+spending(?:\s+money)?|(?:something|things|activities|stuff)\s+free)\b",
)

_GROUP_PATTERNS = _p(
    r"\b(?P<value>solo|alone|by\s+myself|on\s+my\s+own)\b",
    r"\bwith\s+(?P<value>(?:my|our)\s+(?:wife|husband|partner|spouse|family|kids|children|friends?"
    r"|girlfriend|boyfriend|parents|colleagues|team|coworkers|son|daughter|mom|dad|sister|brother))\b",
    r"\b(?P<value>(?:\d+|two|three|four|five|six|seven|eight|nine|ten|twelve|fifteen|twenty|a\s+few)"
    r"\s+(?:of\s+us|people|persons|guests|travell?ers|adults|friends|attendees|participants|kids|children))\b",
    r"\b(?P<value>(?:party|group|family|team)\s+of\s+(?:\d+|two|three|four|five|six|seven|eight|nine|ten))\b",
    r"\bas\s+a\s+(?P<value>couple)\b",
)

_WHERE_PATTERNS = _p(
    r"\b(?:at|in)\s+(?P<value>(?:my|our|the|a)\s+(?:home|house|place|apartment|backyard|garden|office"
    r"|park|beach|restaurant|rooftop|hall|venue|community\s+center|church|gym|library))\b",
    r"\b(?P<value>at\s+home|outdoors|indoors|online|remotely)\b",
) + _p(
    rf"(?i:\b(?:at|in|near|around)\s+)(?P<value>{PLACE})",
    flags=0,
)

_LEVEL_PATTERNS = _p(
    r"\b(?P<value>(?:complete\s+|total\s+|absolute\s+)?beginner|novice|intermediate|advanced|experienced"
    r"|out\s+of\s+shape|rusty)\b",
    r"\bI'?m\s+(?:pretty\s+|very\s+|fairly\s+|quite\s+)?(?P<value>fit|active|sedentary|new\s+to\s+(?:this|it))\b",
    r"\b(?P<value>(?:never|haven'?t)\s+(?:done|tried|worked\s+out|exercised|studied)\s+(?:it|this|before|in\s+(?:a\s+while|years|months)))\b",
)

_COMMITMENT_PATTERNS = _p(
    r"\b(?P<value>(?:\d+|one|two|three|four|five|a\s+few|an?)(?:\s*-\s*\d+)?\s*(?:hours?|hrs?|minutes?|mins?)"
    r"\s+(?:a|per|each|every)\s+(?:day|week|night|weekday))\b",
)

_FREQUENCY_PATTERNS = _p(
    r"\b(?P<value>(?:\d+|one|two|three|four|five|six|seven|once|twice|thrice)(?:\s+times|\s*x|\s+days)?"
    r"\s+(?:a|per|each|every)\s+(?:week|day|month))\b",
    r"\b(?P<value>daily|every\s+day|every\s+(?:other\s+)?(?:morning|evening|day|weekday)|weekdays|weekly"
    r"|on\s+weekends)\b",
)


# =============================================================================
# Domain table
# =============================================================================

DOMAIN_TABLE: dict[Domain, DomainSpec] = {
    Domain.TRAVEL: DomainSpec(
        domain=Domain.TRAVEL,
        label="Travel & Trips",
        keywords=(
            "trip", "travel", "traveling", "travelling", "vacation", "getaway", "flight", "fly to",
            "itinerary", "road trip", "honeymoon", "tour", "abroad", "backpacking", "visit",
        ),
        fields=(
            _field(
                "destination", "Destination", "Where are you headed?", 100,
                _p(
                    rf"(?i:\b(?:to|visit(?:ing)?|towards?|explor(?:e|ing)|(?<!live\s)(?<!based\s)in)\s+)(?P<value>{PLACE})",
                    flags=0,
                ),
                place=True,
            ),
            _field("dates", "Dates", "When are you travelling?", 90, _DATE_PATTERNS, temporal=True),
            _field("duration", "Duration", "How many days will you be away?", 80, _TRIP_LENGTH_PATTERNS),
            _field(
                "origin", "Origin", "Where will you be travelling from?", 70,
                _p(
                    rf"(?i:\b(?:from|leaving|departing(?:\s+from)?|flying\s+out\s+of|live\s+in|based\s+in)\s+)(?P<value>{PLACE})",
                    flags=0,
                ),
                place=True,
            ),
            _field("budget", "Budget", "What's your total budget for the trip?", 60, _BUDGET_PATTERNS, budget=True),
            _field("travelers", "Travelers", "Who's coming along, or are you travelling solo?", 50, _GROUP_PATTERNS, count=True),
            _field(
                "occasion", "Occasion", "Is there an occasion you're celebrating?", 40,
                _p(
                    r"\b(?:for|celebrat(?:e|ing))\s+(?:(?:our|my|his|her|their|a|an|the)\s+)?"
                    r"(?P<value>(?:\d+(?:st|nd|rd|th)\s+)?(?:anniversary|birthday|honeymoon|wedding|graduation"
                    r"|retirement|reunion|promotion|bachelor(?:ette)?\s+party|engagement|babymoon"
                    r"|business\s+trip|work\s+trip|conference))\b",
                    r"\b(?P<value>honeymoon|babymoon|business\s+trip|bachelor(?:ette)?\s+party|(?:\d+(?:st|nd|rd|th)\s+)?anniversary)\b",
                ),
            ),
        ),
    ),
    Domain.FITNESS: DomainSpec(
        domain=Domain.FITNESS,
        label="Fitness & Wellness",
        keywords=(
            "workout", "work out", "gym", "fitness", "exercise", "training", "marathon", "yoga",
            "lose weight", "hiking", "hike", "strength", "cardio", "in shape", "running", "wellness",
        ),
        fields=(
            _field(
                "goal", "Goal", "What's your main fitness goal?", 100,
                _p(
                    r"\b(?:to|want\s+to|trying\s+to|goal\s+is\s+to|so\s+I\s+can)\s+(?P<value>lose\s+(?:some\s+)?weight"
                    r"|lose\s+\d+\s*(?:lbs?|pounds|kg|kilos)|build\s+(?:muscle|strength|endurance|stamina)"
                    r"|gain\s+(?:muscle|strength|weight)|get\s+(?:fit|stronger|in\s+shape|leaner|faster)|tone\s+up"
                    r"|improve\s+(?:my\s+)?(?:endurance|flexibility|stamina|cardio|mobility|posture)"
                    r"|run\s+a\s+(?:\d+k|half[\s-]marathon|marathon)|stay\s+(?:active|healthy|fit)|reduce\s+stress)\b",
                    r"\b(?P<value>weight\s+loss|muscle\s+gain|marathon\s+training)\b",
                ),
            ),
            _field(
                "activity", "Activity", "What kind of exercise do you enjoy or want to do?", 90,
                _p(
                    r"\b(?P<value>running|jogging|yoga|pilates|weight\s*lifting|weights|strength\s+training"
                    r"|hik(?:e|es|ing)|swimming|cycling|biking|spinning|crossfit|hiit|boxing|rowing|dancing"
                    r"|climbing|walking|stretching|calisthenics|gym\s+workouts?|cardio)\b",
                ),
            ),
            _field("frequency", "Frequency", "How many times a week can you train?", 80, _FREQUENCY_PATTERNS),
            _field("fitness_level", "Current level", "How would you describe your current fitness level?", 70, _LEVEL_PATTERNS),
            _field("session_length", "Session length", "How long can each session be?", 60, _SESSION_LENGTH_PATTERNS),
        ),
    ),
    Domain.EVENTS: DomainSpec(
        domain=Domain.EVENTS,
        label="Events",
        keywords=(
            "party", "wedding", "birthday", "conference", "shower", "celebration", "gala", "fundraiser",
            "reunion", "event", "housewarming", "bbq", "barbecue",
        ),
        fields=(
            _field(
                "event_type", "Event", "What kind of event is it?", 100,
                _p(
                    r"\b(?P<value>(?:\d+(?:st|nd|rd|th)\s+)?birthday\s+party|(?:surprise\s+)?party|wedding(?:\s+reception)?"
                    r"|baby\s+shower|bridal\s+shower|conference|workshop|meetup|fundraiser|gala|reunion|housewarming"
                    r"|retirement\s+party|graduation\s+party|festival|celebration|picnic|barbecue|bbq)\b",
                ),
            ),
            _field("dates", "Date", "When is the event?", 90, _DATE_PATTERNS, temporal=True),
            _field("guests", "Guests", "How many guests are you expecting?", 80, _GROUP_PATTERNS, count=True),
            _field("venue", "Venue", "Where will it take place?", 70, _WHERE_PATTERNS, place=True),
            _field("budget", "Budget", "What's your total budget?", 60, _BUDGET_PATTERNS, budget=True),
            _field(
                "theme", "Theme", "Any theme or vibe you're going for?", 40,
                _p(
                    r"\btheme\s+(?:is|will\s+be|:)\s+(?P<value>[\w' -]{2,40}?)(?=[.,!?;]|$)",
                    r"\b(?P<value>[A-Za-z'-]{3,})[\s-]themed?\b",
                ),
            ),
        ),
    ),
    Domain.LEARNING: DomainSpec(
        domain=Domain.LEARNING,
        label="Learning",
        keywords=(
            "learn", "learning", "study", "studying", "course", "class", "skill", "exam", "language",
            "tutorial", "certification", "bootcamp",
        ),
        fields=(
            _field(
                "topic", "Topic", "What exactly do you want to learn?", 100,
                _p(
                    r"\b(?:learn(?:ing)?|study(?:ing)?|master(?:ing)?|get\s+better\s+at|practi[cs](?:e|ing))\s+"
                    r"(?:how\s+to\s+)?(?P<value>[\w+#' -]{2,40}?)(?=\s+(?:in|for|by|within|over|from|before|this|next|so"
                    r"|because|and|with)\b|[.,!?;]|$)",
                    r"\bfor\s+(?:the|my)\s+(?P<value>[\w-]+\s+exam)\b",
                ),
                free_text=True,
            ),
            _field("current_level", "Current level", "What's your current level with it?", 90, _LEVEL_PATTERNS),
            _field(
                "timeline", "Timeline", "By when do you want to reach your goal?", 80,
                _p(
                    rf"\b(?:in|within|over|by)\s+(?P<value>(?:the\s+next\s+)?{NUMWORD}\s+(?:days?|weeks?|months?|years?))\b",
                    rf"\bby\s+(?P<value>(?:the\s+end\s+of\s+)?(?:{MONTHS}|{WEEKDAYS}|next\s+\w+|the\s+end\s+of\s+the\s+(?:year|month)))\b",
                ),
                temporal=True,
            ),
            _field("time_commitment", "Time per week", "How much time can you set aside each week?", 70, _COMMITMENT_PATTERNS),
            _field(
                "format", "Format", "Do you prefer courses, books, videos or a tutor?", 50,
                _p(
                    r"\b(?P<value>online\s+courses?|books?|videos?|youtube|podcasts?|in[\s-]person\s+class(?:es)?"
                    r"|classes|a\s+tutor|tutoring|bootcamp|apps?|flashcards)\b",
                ),
            ),
        ),
    ),
    Domain.SOCIAL: DomainSpec(
        domain=Domain.SOCIAL,
        label="Social",
        keywords=("hangout", "hang out", "game night", "get-together", "get together", "catch up", "friends", "meetup"),
        fields=(
            _field(
                "activity", "Activity", "What would you like to do together?", 100,
                _p(
                    r"\b(?P<value>game\s+night|board\s+games|movie\s+night|karaoke|bowling|picnic|drinks|potluck"
                    r"|trivia(?:\s+night)?|escape\s+room|hangout|hang\s+out|get[\s-]together|sleepover|bonfire)\b",
                ),
            ),
            _field("dates", "When", "When do you want to get together?", 90, _DATE_PATTERNS + _TIME_PATTERNS, temporal=True),
            _field("group_size", "Group", "How many people are joining?", 80, _GROUP_PATTERNS, count=True),
            _field("location", "Location", "Where will you meet?", 70, _WHERE_PATTERNS, place=True),
        ),
    ),
    Domain.ENTERTAINMENT: DomainSpec(
        domain=Domain.ENTERTAINMENT,
        label="Entertainment",
        keywords=(
            "movie", "movies", "concert", "show", "museum", "theater", "theatre", "festival", "comedy",
            "exhibit", "exhibition", "gig", "musical", "opera",
        ),
        fields=(
            _field(
                "activity", "Activity", "What are you planning to see or do?", 100,
                _p(
                    r"\b(?P<value>movie|film|concert|(?:comedy\s+)?show|museum|theat(?:er|re)|musical|festival"
                    r"|exhibit(?:ion)?|gallery|opera|ballet|play|gig|game)\b",
                ),
            ),
            _field("dates", "When", "When are you going?", 90, _DATE_PATTERNS + _TIME_PATTERNS, temporal=True),
            _field("group_size", "Group", "Who's coming with you?", 80, _GROUP_PATTERNS, count=True),
            _field("location", "Location", "Which venue or city?", 70, _WHERE_PATTERNS, place=True),
            _field("budget", "Budget", "How much do you want to spend?", 50, _BUDGET_PATTERNS, budget=True),
        ),
    ),
    Domain.WORK: DomainSpec(
        domain=Domain.WORK,
        label="Work",
        keywords=(
            "project", "deadline", "presentation", "meeting", "report", "launch", "sprint", "client",
            "offsite", "proposal", "work",
        ),
        fields=(
            _field(
                "project", "Project", "What's the project or deliverable?", 100,
                _p(
                    r"\b(?P<value>[\w'-]+(?:\s+[\w'-]+)?\s+(?:project|launch|presentation|report|proposal|release"
                    r"|migration|offsite|review|pitch|roadmap|campaign))\b",
                ),
                free_text=True,
            ),
            _field(
                "deadline", "Deadline", "When is it due?", 90,
                _p(
                    rf"\b(?:by|before|due|deadline\s+is)\s+(?P<value>(?:next\s+|this\s+)?{WEEKDAYS}"
                    rf"|{MONTHS}\.?\s+{ORDINAL}|end\s+of\s+(?:the\s+)?(?:day|week|month|quarter|year)|tomorrow"
                    r"|next\s+(?:week|month))\b",
                ),
                temporal=True,
            ),
            _field(
                "team_size", "Team", "Who's working on it with you?", 80,
                _p(r"\bteam\s+of\s+(?P<value>\d+|two|three|four|five|six|seven|eight|nine|ten)\b") + _GROUP_PATTERNS,
                count=True,
            ),
            _field("time_commitment", "Time available", "How much time can you put in per day or week?", 60, _COMMITMENT_PATTERNS),
        ),
    ),
    Domain.SHOPPING: DomainSpec(
        domain=Domain.SHOPPING,
        label="Shopping",
        keywords=("buy", "buying", "shopping", "shop", "purchase", "gift", "groceries", "store"),
        fields=(
            _field(
                "items", "Items", "What are you shopping for?", 100,
                _p(
                    r"\b(?:buy(?:ing)?|shop(?:ping)?\s+for|purchas(?:e|ing)|get(?:ting)?)\s+(?:(?:a|an|some|new|my|the)\s+)*"
                    r"(?P<value>[\w' -]{2,40}?)(?=\s+(?:for|at|from|by|under|with|before|this|next|on)\b|[.,!?;]|$)",
                ),
                free_text=True,
            ),
            _field("budget", "Budget", "What's your budget?", 90, _BUDGET_PATTERNS, budget=True),
            _field("dates", "When", "When do you need it by?", 80, _DATE_PATTERNS, temporal=True),
            _field(
                "store", "Store", "Any store or place you prefer?", 60,
                _p(rf"(?i:\b(?:at|from)\s+)(?P<value>{PLACE})", flags=0) + _p(r"\b(?P<value>online)\b"),
                place=True,
            ),
        ),
    ),
    Domain.DINING: DomainSpec(
        domain=Domain.DINING,
        label="Dining",
        keywords=("dinner", "lunch", "restaurant", "brunch", "eat", "eating", "food", "cuisine", "reservation", "date night"),
        fields=(
            _field(
                "cuisine", "Cuisine", "What kind of food are you in the mood for?", 100,
                _p(
                    r"\b(?P<value>italian|mexican|japanese|sushi|chinese|thai|indian|french|korean|vietnamese"
                    r"|mediterranean|greek|spanish|tapas|bbq|barbecue|seafood|steak(?:house)?|pizza|ramen"
                    r"|middle\s+eastern|ethiopian|peruvian|burgers?)\b",
                ),
            ),
            _field("dates", "When", "What day and time?", 90, _DATE_PATTERNS + _TIME_PATTERNS, temporal=True),
            _field("group_size", "Party size", "How many people are dining?", 80, _GROUP_PATTERNS, count=True),
            _field("location", "Area", "Which neighborhood or area?", 70, _WHERE_PATTERNS, place=True),
            _field("budget", "Budget", "What's your budget per person?", 60, _BUDGET_PATTERNS, budget=True),
            _field(
                "dietary", "Dietary needs", "Any dietary restrictions?", 40,
                _p(
                    r"\b(?P<value>vegan|vegetarian|gluten[\s-]free|dairy[\s-]free|nut\s+allerg(?:y|ies)|kosher|halal"
                    r"|pescatarian|lactose\s+intolerant|no\s+(?:dietary\s+)?restrictions)\b",
                ),
            ),
        ),
    ),
    Domain.GENERIC: DomainSpec(
        domain=Domain.GENERIC,
        label="Other",
        keywords=(),
        fields=(
            _field(
                "what", "What", "What exactly would you like to plan?", 100,
                _p(
                    r"\b(?:plan|organi[sz]e|schedule|prepare|arrange|set\s+up|help\s+me\s+with)\s+"
                    r"(?:(?:a|an|my|our|the|some)\s+)?(?P<value>[\w' -]{3,60}?)(?=\s+(?:to|in|at|for|on|with|from|next"
                    r"|this|tomorrow|tonight|by)\b|[.,!?;]|$)",
                ),
                free_text=True,
            ),
            _field("when", "When", "When should this happen?", 90, _DATE_PATTERNS + _TIME_PATTERNS, temporal=True),
            _field("where", "Where", "Where will it take place?", 80, _WHERE_PATTERNS, place=True),
        ),
    ),
}


def get_domain_spec(domain: Domain) -> DomainSpec:
    """Look up the spec for a domain (every Domain member has one)."""
    return DOMAIN_TABLE[domain]


__all__ = [
    "AMOUNT",
    "APPROX",
    "BARE_NUMBER",
    "COUNT_WORDS",
    "DOMAIN_TABLE",
    "DomainSpec",
    "FILLER_VALUES",
    "FieldSpec",
    "MONTHS",
    "NON_PLACE_WORDS",
    "NO_BUDGET",
    "PLACE",
    "WEEKDAYS",
    "get_domain_spec",
]

"""
Local heuristic responder.

Deterministic, offline answers for the text request kinds. Used directly when
no provider credential is configured and as the fallback when the remote
chain is exhausted. Branches are evaluated in a fixed priority order and are
mutually exclusive:

    price-bound -> category -> age -> greeting -> thanks -> best/popular
    -> shipping -> default

The language only selects the template set; matching is identical.
"""
import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from toywonder.core.constants import CatalogConstants, LimitsConstants
from toywonder.schema import Language, Product
from toywonder.services.catalog_context import format_price

PRICE_CEILING_PATTERN = re.compile(
    r"\b(?:under|below|within|budget(?:\s+(?:is|of))?|less\s+than|up\s*to)\s*[:\-]?\s*"
    r"(?:₹|rs\.?|inr)?\s*(\d[\d,]*(?:\.\d+)?)"
    # "under 5 years" is an age, not a budget
    r"(?![\d.,]*\s*(?:years?|yrs?|y/?o|months?|mos?)\b)",
    re.IGNORECASE,
)

# Iteration order is the tie-break: on equal match counts the category listed
# first wins.
CATEGORY_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("Educational", ["educational", "education", "learning", "learn", "stem", "puzzle", "puzzles",
                     "building", "blocks", "science", "math", "stacker", "brain"]),
    ("Outdoor Fun", ["outdoor", "outside", "car", "cars", "race", "racing", "racer", "rc",
                     "remote control", "train", "ride", "sports", "ball", "park"]),
    ("Plushies", ["plush", "plushie", "plushies", "stuffed", "soft", "teddy", "bear",
                  "elephant", "cuddly", "cuddle"]),
    ("Arts & Crafts", ["art", "arts", "craft", "crafts", "draw", "drawing", "paint", "painting",
                       "colour", "color", "colouring", "coloring", "creative"]),
    ("Robots", ["robot", "robots", "robotic", "tech", "coding", "gadget", "electronic"]),
    ("Gifts", ["gift", "gifts", "present", "presents", "birthday", "surprise", "hamper"]),
]

AGE_WORD_BUCKETS: List[Tuple[str, re.Pattern]] = [
    ("toddler", re.compile(r"\b(?:baby|babies|infants?|toddlers?|newborns?)\b")),
    ("preschool", re.compile(r"\b(?:preschool(?:ers?)?|kindergarten|nursery)\b")),
    ("older", re.compile(r"\b(?:teens?|teenagers?|tweens?|older\s+kids?)\b")),
]
AGE_NUMBER_PATTERN = re.compile(
    r"\b(\d{1,2})\s*(?:\+|(?:-|to)\s*\d{1,2})?\s*(?:years?|yrs?|y/?o)\b"
    r"|\bage[sd]?\s*(\d{1,2})\b"
)

# Curated per age bucket, deliberately not derived from the live catalog
CURATED_AGE_PICKS: Dict[str, List[Tuple[str, int]]] = {
    "toddler": [("Rainbow Stacker", 1199), ("Cuddly Elephant", 1699), ("Cuddly Brown Bear", 2199)],
    "preschool": [("Wooden Express Train", 2499), ("Mega Art Kit", 2999), ("Surprise Gift Box", 1699)],
    "older": [("Super Galactic Robot", 3999), ("Speed Racer RC", 3499), ("Castle Builder Set", 7999)],
}

GREETING_PATTERN = re.compile(
    r"\b(?:hi|hii+|hello|hey|hiya|namaste|greetings|good\s+(?:morning|afternoon|evening))\b"
)
THANKS_PATTERN = re.compile(r"\b(?:thanks?|thank\s+you|thx|ty|bye|goodbye|see\s+you)\b")
POPULAR_PATTERN = re.compile(r"\b(?:best|popular|top|bestsellers?|trending|favou?rites?)\b")
SHIPPING_PATTERN = re.compile(r"\b(?:ship|shipping|shipped|deliver|delivery|courier|dispatch)\b")

BENGALI_GREETINGS = ("নমস্কার", "হ্যালো", "হাই")
BENGALI_THANKS = ("ধন্যবাদ", "বিদায়")


TEMPLATES: Dict[str, Dict[str, str]] = {
    "en": {
        "price": "Here are our top-rated picks within {budget}:\n{items}",
        "price_consolation": "I couldn't find anything within {budget}, but our most affordable toy is {items_inline}. 🎁",
        "category": "Great choice! Our favourite {category} toys are:\n{items}",
        "category_empty": "Our {category} toys are all sold out right now. Check back soon, or ask me about another category! 🧸",
        "age_toddler": "For little ones aged 0-2, we recommend:\n{items}\nAll are soft, safe and easy to hold. 👶",
        "age_preschool": "For kids aged 3-6, these are big hits:\n{items}\nPerfect for imaginative play! 🎨",
        "age_older": "For kids aged 7 and up, try:\n{items}\nGreat for curious minds! 🚀",
        "greeting": "Hi there! 👋 I'm GiftBot from ToyWonder. Tell me the child's age, your budget or their interests and I'll find the perfect toy!",
        "thanks": "You're welcome! Happy shopping at ToyWonder. 🎁 Come back any time!",
        "popular": "Our most popular toys right now:\n{items}",
        "shipping": "We deliver across India in 3-5 business days, and delivery is free on orders above ₹999. 🚚 You can also order on WhatsApp!",
        "default": "Here are some of our highest-rated toys:\n{items}\nTell me the child's age, your budget or their interests and I can narrow it down! 🎈",
        "no_stock": "Everything in our shop is sold out right now. Please check back soon! 🧸",
        "gift": "I can definitely help you find a gift for {recipient}! 🎁\n{reply}",
    },
    "bn": {
        "price": "{budget}-এর মধ্যে আমাদের সেরা রেটিংয়ের খেলনাগুলি:\n{items}",
        "price_consolation": "{budget}-এর মধ্যে কিছু পাইনি, তবে আমাদের সবচেয়ে সাশ্রয়ী খেলনা হল {items_inline}। 🎁",
        "category": "দারুণ পছন্দ! আমাদের প্রিয় {category} খেলনাগুলি:\n{items}",
        "category_empty": "আমাদের {category} খেলনাগুলি এখন স্টকে নেই। শীঘ্রই আবার দেখুন, অথবা অন্য বিভাগ সম্পর্কে জিজ্ঞাসা করুন! 🧸",
        "age_toddler": "০-২ বছরের শিশুদের জন্য আমরা সুপারিশ করি:\n{items}\nসবগুলোই নরম ও নিরাপদ। 👶",
        "age_preschool": "৩-৬ বছরের শিশুদের জন্য এগুলো খুব জনপ্রিয়:\n{items}\nকল্পনাপ্রবণ খেলার জন্য দারুণ! 🎨",
        "age_older": "৭ বছর বা তার বেশি বয়সীদের জন্য:\n{items}\nকৌতূহলী মনের জন্য চমৎকার! 🚀",
        "greeting": "নমস্কার! 👋 আমি টয়ওয়ান্ডারের গিফটবট। শিশুর বয়স, আপনার বাজেট বা তাদের পছন্দ বলুন, আমি সেরা খেলনাটি খুঁজে দেব!",
        "thanks": "আপনাকেও ধন্যবাদ! টয়ওয়ান্ডারে আনন্দে কেনাকাটা করুন। 🎁",
        "popular": "এই মুহূর্তে আমাদের সবচেয়ে জনপ্রিয় খেলনা:\n{items}",
        "shipping": "আমরা সারা ভারতে ৩-৫ কার্যদিবসে ডেলিভারি দিই, ₹999-এর বেশি অর্ডারে ডেলিভারি বিনামূল্যে। 🚚 হোয়াটসঅ্যাপেও অর্ডার করতে পারেন!",
        "default": "আমাদের সর্বোচ্চ রেটিংয়ের কিছু খেলনা:\n{items}\nশিশুর বয়স, বাজেট বা পছন্দ বললে আরও ভালোভাবে সাহায্য করতে পারব! 🎈",
        "no_stock": "এই মুহূর্তে আমাদের সব খেলনা স্টকের বাইরে। শীঘ্রই আবার দেখুন! 🧸",
        "gift": "আমি অবশ্যই {recipient}-এর জন্য উপহার খুঁজতে সাহায্য করতে পারি! 🎁\n{reply}",
    },
}


class HeuristicReply(NamedTuple):
    branch: str
    text: str


def _tokens(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", text.lower())


def _format_items(picks: Iterable[Tuple[str, float]]) -> str:
    return "\n".join(f"• {name} ({format_price(price)})" for name, price in picks)


def _picks(products: Iterable[Product]) -> List[Tuple[str, float]]:
    return [(p.name, p.price) for p in products]


def _in_stock(products: Iterable[Product]) -> List[Product]:
    return [p for p in products if p.in_stock]


def top_by_rating(products: Iterable[Product], count: int = LimitsConstants.TOP_PRODUCTS_COUNT) -> List[Product]:
    return sorted(products, key=lambda p: p.rating, reverse=True)[:count]


def top_by_popularity(products: Iterable[Product], count: int = LimitsConstants.TOP_PRODUCTS_COUNT) -> List[Product]:
    return sorted(products, key=lambda p: p.popularity, reverse=True)[:count]


def parse_price_ceiling(text: str) -> Optional[float]:
    """Extract the budget from phrases like 'under ₹2,000' or 'budget 1500'."""
    match = PRICE_CEILING_PATTERN.search(text)
    if not match:
        return None
    return float(match.group(1).replace(",", ""))


def score_categories(text: str) -> List[Tuple[str, int]]:
    """Keyword match count per category, in table order."""
    tokens = set(_tokens(text))
    joined = " ".join(_tokens(text))
    scores = []
    for category, keywords in CATEGORY_KEYWORDS:
        count = 0
        for keyword in keywords:
            if " " in keyword:
                count += int(f" {keyword} " in f" {joined} ")
            else:
                count += int(keyword in tokens)
        scores.append((category, count))
    return scores


def match_category(text: str) -> Optional[str]:
    """Category with the strictly highest keyword count; earlier entries win ties."""
    best_category, best_count = None, 0
    for category, count in score_categories(text):
        if count > best_count:
            best_category, best_count = category, count
    return best_category


def match_age_bucket(text: str) -> Optional[str]:
    lowered = text.lower()
    for bucket, pattern in AGE_WORD_BUCKETS:
        if pattern.search(lowered):
            return bucket

    match = AGE_NUMBER_PATTERN.search(lowered)
    if not match:
        return None
    age = int(match.group(1) or match.group(2))
    if age <= 2:
        return "toddler"
    if age <= 6:
        return "preschool"
    return "older"


class HeuristicResponder:
    """Rule-based replies over a static product list."""

    def __init__(self, products: Sequence[Product]):
        self.products = list(products)

    def respond(self, message: str, language: Language = "en") -> HeuristicReply:
        """Answer a chat message using the first matching branch."""
        templates = TEMPLATES.get(language, TEMPLATES["en"])
        lowered = message.lower()

        budget = parse_price_ceiling(message)
        if budget is not None:
            return self._price_reply(budget, templates)

        category = match_category(message)
        if category:
            return self._category_reply(category, templates)

        bucket = match_age_bucket(message)
        if bucket:
            picks = _format_items(CURATED_AGE_PICKS[bucket])
            return HeuristicReply("age", templates[f"age_{bucket}"].format(items=picks))

        if GREETING_PATTERN.search(lowered) or any(w in message for w in BENGALI_GREETINGS):
            return HeuristicReply("greeting", templates["greeting"])

        if THANKS_PATTERN.search(lowered) or any(w in message for w in BENGALI_THANKS):
            return HeuristicReply("thanks", templates["thanks"])

        if POPULAR_PATTERN.search(lowered):
            picks = top_by_popularity(_in_stock(self.products))
            if picks:
                return HeuristicReply("popular", templates["popular"].format(items=_format_items(_picks(picks))))

        if SHIPPING_PATTERN.search(lowered):
            return HeuristicReply("shipping", templates["shipping"])

        return self._default_reply(templates)

    def _price_reply(self, budget: float, templates: Dict[str, str]) -> HeuristicReply:
        in_stock = _in_stock(self.products)
        affordable = [p for p in in_stock if p.price <= budget]
        if affordable:
            picks = top_by_rating(affordable)
            text = templates["price"].format(budget=format_price(budget), items=_format_items(_picks(picks)))
            return HeuristicReply("price", text)

        if not in_stock:
            return HeuristicReply("price", templates["no_stock"])

        cheapest = min(in_stock, key=lambda p: p.price)
        inline = f"{cheapest.name} ({format_price(cheapest.price)})"
        text = templates["price_consolation"].format(budget=format_price(budget), items_inline=inline)
        return HeuristicReply("price", text)

    def _category_reply(self, category: str, templates: Dict[str, str]) -> HeuristicReply:
        picks = top_by_popularity(_in_stock(p for p in self.products if p.category == category))
        if not picks:
            return HeuristicReply("category", templates["category_empty"].format(category=category))
        return HeuristicReply("category", templates["category"].format(category=category, items=_format_items(_picks(picks))))

    def _default_reply(self, templates: Dict[str, str]) -> HeuristicReply:
        picks = top_by_rating(_in_stock(self.products))
        if not picks:
            return HeuristicReply("default", templates["no_stock"])
        return HeuristicReply("default", templates["default"].format(items=_format_items(_picks(picks))))

    # ------------------------------------------------------------------
    # Supplementary heuristics for the other text request kinds
    # ------------------------------------------------------------------

    def recommend_categories(self, query: str) -> List[str]:
        """Rank categories by keyword matches, or the static default when none match."""
        scored = [(category, count) for category, count in score_categories(query) if count > 0]
        # sorted() is stable, so equal counts keep table order
        ranked = [category for category, _ in sorted(scored, key=lambda item: item[1], reverse=True)]
        if not ranked:
            return list(CatalogConstants.DEFAULT_SEARCH_CATEGORIES)
        return ranked[:LimitsConstants.MAX_SEARCH_CATEGORIES]

    def recommend_from_history(self, viewed: Sequence[str]) -> List[Product]:
        """Products whose category or leading name word appears in the viewed names."""
        if not viewed:
            return self.products[:LimitsConstants.TOP_PRODUCTS_COUNT]

        keywords = " ".join(viewed).lower()
        recs = []
        for product in self.products:
            first_word = product.name.split(" ")[0].lower() if product.name else ""
            if product.category.lower() in keywords or (first_word and first_word in keywords):
                recs.append(product)

        limit = LimitsConstants.MAX_HISTORY_RECOMMENDATIONS
        return recs[:limit] if recs else self.products[:limit]

    def gift_suggestion(
        self,
        recipient: str,
        interests: str = "",
        price_range: str = "",
        language: Language = "en",
    ) -> HeuristicReply:
        """Wrap the responder's picks for the interests and budget in a gift template."""
        templates = TEMPLATES.get(language, TEMPLATES["en"])
        query = interests
        amounts = [float(n.replace(",", "")) for n in re.findall(r"\d[\d,]*", price_range)]
        if amounts:
            query = f"{interests} under {max(amounts):.0f}"

        reply = self.respond(query, language)
        return HeuristicReply(reply.branch, templates["gift"].format(recipient=recipient, reply=reply.text))

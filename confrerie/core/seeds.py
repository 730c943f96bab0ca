"""Built-in content: the default roster, the seed challenges and flavor text."""

from __future__ import annotations

import functools
from urllib.parse import quote

from werkzeug.security import generate_password_hash

from .models import Challenge, Difficulty, Document, Role, User

DEFAULT_ADMIN_ID = "admin"
DEFAULT_ADMIN_PASSWORD = "admin"
DEFAULT_MEMBER_NAMES = ("Justin", "Robin", "Benjy", "Ruru", "Guilhem")

GM_COMMENTS = (
    "Style valide, bon dossier.",
    "Grosse energie, continue comme ca.",
    "Post solide, points accordes.",
    "Belle contribution a la soiree.",
    "Bon niveau, ca monte.",
)

SEED_CHALLENGES: tuple[tuple[str, str, Difficulty], ...] = (
    ("c1", "Bois 3 gorgees sans les mains.", Difficulty.FACILE),
    ("c2", "Fais trinquer 3 personnes inconnues.", Difficulty.FACILE),
    ("c3", "Fais un toast dramatique de 20 secondes.", Difficulty.FACILE),
    ("c4", "Imite une pub de boisson pendant 15 secondes.", Difficulty.FACILE),
    ("c5", "Demande a quelqu’un son meilleur surnom de soiree.", Difficulty.FACILE),
    ("c6", "Fais un cul sec (petit verre).", Difficulty.MOYEN),
    ("c7", "Danse sans musique pendant 30 secondes.", Difficulty.MOYEN),
    ("c8", "Raconte une anecdote cringe de 45 secondes.", Difficulty.MOYEN),
    ("c9", "Parle avec une voix robot pendant 2 minutes.", Difficulty.MOYEN),
    ("c10", "Fais un karaoke solo sur le refrain de ton choix.", Difficulty.MOYEN),
    ("c11", "Laisse quelqu’un choisir ta boisson du prochain tour.", Difficulty.MOYEN),
    ("c12", "Fais 15 squats avant de boire.", Difficulty.MOYEN),
    ("c13", "Trouve un objet rouge et fais une story avec.", Difficulty.MOYEN),
    ("c14", "Fais rire 3 personnes en moins de 2 minutes.", Difficulty.MOYEN),
    ("c15", "Echange ton pseudo avec quelqu’un pour 10 minutes.", Difficulty.MOYEN),
    ("c16", "Shot mystere choisi par la table.", Difficulty.HARDCORE),
    ("c17", "Parle en rimant pendant 3 minutes.", Difficulty.HARDCORE),
    ("c18", "Fais un mini stand-up de 1 minute.", Difficulty.HARDCORE),
    ("c19", "Cul sec + 10 pompes.", Difficulty.HARDCORE),
    ("c20", "Laisse le groupe choisir ton prochain defi.", Difficulty.HARDCORE),
    ("c21", "Fais la meilleure imitation d’un prof.", Difficulty.MOYEN),
    ("c22", "Bois en gardant les yeux fermes.", Difficulty.FACILE),
    ("c23", "Reconstitue une scene de film au hasard.", Difficulty.MOYEN),
    ("c24", "Invente un cocktail imaginaire et vend-le.", Difficulty.MOYEN),
    ("c25", "Fais un compliment sincere a 4 personnes.", Difficulty.FACILE),
    ("c26", "Mime un animal jusqu’a ce qu’on devine.", Difficulty.FACILE),
    ("c27", "Laisse ton voisin ecrire ta bio pour 10 min.", Difficulty.MOYEN),
    ("c28", "Parie un shot sur un pierre-feuille-ciseaux.", Difficulty.HARDCORE),
    ("c29", "Bois une gorgee a chaque fois que tu ris (5 min).", Difficulty.HARDCORE),
    ("c30", "Tu dois finir ta phrase en chantant (10 min).", Difficulty.MOYEN),
    ("c31", "Fais un tour de table en mode presentateur TV.", Difficulty.MOYEN),
    ("c32", "Crie “sante” dans 3 langues.", Difficulty.FACILE),
    ("c33", "Raconte ton reve le plus bizarre.", Difficulty.FACILE),
    ("c34", "Defi mime cocktail: les autres devinent.", Difficulty.MOYEN),
    ("c35", "Change de place toutes les 2 minutes (10 min).", Difficulty.HARDCORE),
    ("c36", "Fais un selfie de groupe le plus chaotique possible.", Difficulty.FACILE),
    ("c37", "Donne un surnom a chacun de la table.", Difficulty.MOYEN),
    ("c38", "Fais un plan de soiree absurde en 30 secondes.", Difficulty.MOYEN),
    ("c39", "Prends la pose statue pendant 45 secondes.", Difficulty.FACILE),
    ("c40", "Tu perds: shot. Tu gagnes: shot offert (mini-jeu).", Difficulty.HARDCORE),
    ("c41", "Fais 20 secondes de moonwalk improvise.", Difficulty.MOYEN),
    ("c42", "Discours de remerciement pour une “victoire” imaginaire.", Difficulty.MOYEN),
    ("c43", "Raconte 2 verites + 1 mensonge sur ta semaine.", Difficulty.FACILE),
    ("c44", "Prends un accent aleatoire pendant 5 minutes.", Difficulty.HARDCORE),
    ("c45", "Defi “aucun mot anglais” pendant 10 minutes.", Difficulty.HARDCORE),
    ("c46", "Fais une pub pour l’eau en mode epique.", Difficulty.FACILE),
    ("c47", "Danse synchronisee avec un binome 20 secondes.", Difficulty.MOYEN),
    ("c48", "Fais un check original avec 5 personnes.", Difficulty.FACILE),
    ("c49", "Shot si tu rates une devinette du groupe.", Difficulty.HARDCORE),
    ("c50", "Tu dois parler en chuchotant pendant 3 minutes.", Difficulty.MOYEN),
    ("c51", "Imite un DJ pendant 30 secondes.", Difficulty.FACILE),
    ("c52", "Fais une mini interview de 2 personnes.", Difficulty.FACILE),
    ("c53", "Fais deviner un film juste avec des gestes.", Difficulty.MOYEN),
    ("c54", "Bois uniquement a la paille au prochain verre.", Difficulty.MOYEN),
    ("c55", "Defi vitesse: finis ton histoire en 20 secondes.", Difficulty.MOYEN),
    ("c56", "Tu choisis un “mot interdit” pour 10 min.", Difficulty.HARDCORE),
    ("c57", "Rime avec chaque prenom de la table.", Difficulty.HARDCORE),
    ("c58", "Fais un compliment absurde mais stylé.", Difficulty.FACILE),
    ("c59", "Cache un “easter egg” dans une photo de groupe.", Difficulty.MOYEN),
    ("c60", "Shot final si personne ne rigole a ta blague.", Difficulty.HARDCORE),
)


def seed_avatar(seed: str) -> str:
    return "https://api.dicebear.com/7.x/avataaars/svg?seed=" + quote(seed, safe="")


@functools.lru_cache(maxsize=1)
def _default_admin_hash() -> str:
    # Built once per process, the default admin is rebuilt on every load.
    return generate_password_hash(DEFAULT_ADMIN_PASSWORD)


def default_admin() -> User:
    """The canonical administrator injected when a document has none."""
    return User(
        id=DEFAULT_ADMIN_ID,
        name="Le Taulier (Admin)",
        role=Role.ADMIN,
        class_name="Admin",
        bio="Gestionnaire de la confrerie",
        avatar_url="https://api.dicebear.com/7.x/bottts/svg?seed=Admin",
        password_hash=_default_admin_hash(),
        must_set_password=False,
    )


def default_users() -> list[User]:
    members = [
        User(
            id=f"u{index}",
            name=name,
            avatar_url=seed_avatar(name),
            must_set_password=True,
        )
        for index, name in enumerate(DEFAULT_MEMBER_NAMES, start=1)
    ]
    return members + [default_admin()]


def seed_challenges() -> list[Challenge]:
    return [
        Challenge(id=cid, text=text, difficulty=difficulty)
        for cid, text, difficulty in SEED_CHALLENGES
    ]


def default_document() -> Document:
    """Document written on first run and returned for unreadable files."""
    return Document(users=default_users(), challenges=seed_challenges())

"""
Word category source
词汇类别来源 - 类别名到候选词列表的静态映射
"""

import random
import logging
from typing import Dict, List, Optional

from chameleon.core.exceptions import FatalRoundError

logger = logging.getLogger(__name__)


WORD_CATEGORIES: Dict[str, List[str]] = {
    "Animals": [
        "Elephant", "Tiger", "Penguin", "Giraffe", "Dolphin", "Kangaroo", "Panda",
        "Eagle", "Octopus", "Crocodile", "Butterfly", "Rhinoceros", "Wolf", "Gorilla",
        "Koala", "Flamingo", "Shark", "Zebra", "Peacock", "Sloth", "Hedgehog", "Squirrel",
        "Turtle", "Jaguar", "Raccoon", "Jellyfish", "Parrot", "Chameleon", "Owl", "Platypus",
        "Walrus", "Meerkat", "Lynx", "Narwhal", "Alpaca", "Bison", "Lemur", "Tarantula",
        "Armadillo", "Scorpion", "Badger", "Cheetah", "Beaver", "Ostrich", "Hyena",
        "Hippo", "Moose", "Bald Eagle", "Wolverine", "Hummingbird",
    ],
    "Occupations": [
        "Doctor", "Teacher", "Firefighter", "Architect", "Chef", "Pilot", "Actor",
        "Engineer", "Scientist", "Lawyer", "Journalist", "Programmer", "Astronaut",
        "Photographer", "Plumber", "Electrician", "Detective", "Veterinarian",
        "Carpenter", "Mechanic", "Paramedic", "Dentist", "Librarian", "Designer",
        "Athlete", "Musician", "Baker", "Barber", "Painter", "Police Officer",
        "Farmer", "Surgeon", "Judge", "Accountant", "Gardener", "Cashier", "Therapist",
    ],
    "Food & Drinks": [
        "Pizza", "Sushi", "Espresso", "Burger", "Chocolate", "Smoothie", "Taco",
        "Croissant", "Curry", "Lemonade", "Lasagna", "Cappuccino", "Pancakes",
        "Ice Cream", "Steak", "Doughnut", "Mojito", "Pad Thai", "Cheesecake",
        "Pasta", "Milkshake", "Bubble Tea", "Guacamole", "Ramen", "Cupcake",
        "Margarita", "Macarons", "Tiramisu", "Dumpling", "Crepe", "Hot Dog",
    ],
    "Sports": [
        "Soccer", "Basketball", "Tennis", "Golf", "Swimming", "Baseball", "Cricket",
        "Volleyball", "Hockey", "Rugby", "Surfing", "Boxing", "Skiing", "Gymnastics",
        "Marathon", "Badminton", "Cycling", "Karate", "Archery", "Skateboarding",
        "Fencing", "Rowing", "Bowling", "Diving", "Sailing", "Snowboarding", "Curling",
    ],
    "Musical Instruments": [
        "Guitar", "Piano", "Violin", "Drums", "Flute", "Saxophone", "Trumpet", "Harp",
        "Cello", "Clarinet", "Accordion", "Ukulele", "Harmonica", "Bagpipes", "Xylophone",
        "Bass Guitar", "Trombone", "Banjo", "Oboe", "Organ", "Mandolin", "French Horn",
    ],
    "Famous Landmarks": [
        "Eiffel Tower", "Statue of Liberty", "Great Wall of China", "Taj Mahal",
        "Colosseum", "Machu Picchu", "Pyramids of Giza", "Sydney Opera House",
        "Stonehenge", "Mount Rushmore", "Big Ben", "Golden Gate Bridge", "Acropolis",
        "Leaning Tower of Pisa", "Christ the Redeemer", "Angkor Wat", "Burj Khalifa",
    ],
    "Transportation": [
        "Car", "Airplane", "Bicycle", "Train", "Submarine", "Helicopter", "Boat", "Truck",
        "Motorcycle", "Bus", "Hot Air Balloon", "Cruise Ship", "Skateboard", "Spaceship",
        "Jet Ski", "Yacht", "Tram", "Segway", "Sailboat", "Canoe", "Snowmobile",
    ],
}


class WordSource:
    """词汇来源，默认使用内置类别"""

    def __init__(self, categories: Optional[Dict[str, List[str]]] = None):
        self.categories = categories if categories is not None else WORD_CATEGORIES

    def list_categories(self) -> List[str]:
        return list(self.categories.keys())

    def pick_category(self, name: str) -> List[str]:
        """获取类别的词汇列表，类别不存在或为空时本轮无法继续"""
        words = self.categories.get(name)
        if words is None:
            raise FatalRoundError(f"类别 {name} 不存在，请重新选择")
        if not words:
            logger.error(f"Category {name} has no words")
            raise FatalRoundError(f"类别 {name} 没有可用词汇，请重新选择")
        return list(words)

    def pick_secret_word(self, name: str, rng=None) -> str:
        """从类别中均匀随机抽取秘密词"""
        rng = rng or random
        return rng.choice(self.pick_category(name))


# 全局默认词汇来源
word_source = WordSource()

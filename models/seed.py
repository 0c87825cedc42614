"""Default genre catalogue."""

DEFAULT_GENRES = [
    ("Fantasy", "Stories featuring magical or supernatural elements in a fictional universe."),
    ("Romance", "Stories focused on relationships and love between characters."),
    ("Mystery", "Stories involving puzzles, crimes, or unexplained events to be solved."),
    ("Sci-Fi", "Science fiction stories featuring futuristic concepts and advanced technology."),
    ("Adventure", "Stories featuring exciting journeys and dangerous quests."),
    ("Horror", "Stories intended to frighten, unsettle, or create suspense."),
    ("Drama", "Stories focused on realistic characters and emotional themes."),
    ("Action", "Fast-paced stories featuring combat, chases, and physical feats."),
    ("Thriller", "Suspenseful stories designed to keep readers on edge."),
    ("Historical Fiction", "Stories set in the past, depicting historical periods and events."),
    ("Urban Fantasy", "Fantasy stories set in modern, urban environments."),
    ("Paranormal", "Stories involving supernatural phenomena and beings."),
    ("Young Adult", "Stories targeted at teenage and young adult readers."),
    ("Contemporary", "Stories set in the present day with realistic themes."),
    ("Slice of Life", "Stories depicting mundane experiences in daily life."),
]

from django.db import models


class MoveDirection(models.TextChoices):
    UP = "up", "Up"
    DOWN = "down", "Down"


# Fewer stops than this leave nothing to optimize.
MIN_STOPS_TO_OPTIMIZE = 2

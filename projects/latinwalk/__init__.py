"""latinwalk — случайные латинские квадраты блужданием Якобсона–Мэтьюза."""
from .latinwalk import (
    LatinSquare, is_latin, render, project,
    move_step, randomize, generate,
    main,
)
from .uniformity import (
    enumerate_latin_squares, sample_counts,
    chi_square_statistic, chi_square_p_value, uniformity_report,
)

"""tnacore - analytical core for Transition Network Analysis.

Builds transition networks from sequence data and analyses them: community
detection, structural graph metrics, permutation tests between groups,
case-dropping centrality stability, edge bootstrap, chi-square residuals
and ANOVA-style comparison of metrics across groups.

Example
-------
>>> import tnacore
>>>
>>> model = tnacore.tna(sequences)
>>> tnacore.detect_communities(model, "louvain")
>>> tnacore.compute_graph_metrics(model)
>>>
>>> groups = tnacore.group_ftna(df, group="cohort")
>>> res = tnacore.permutation_test(groups["A"], groups["B"], iter=1000)
>>> res.edge_stats
>>>
>>> tnacore.estimate_stability(model).cs_coefficients
"""

from .model import TNA, build_model, create_tna, tna, ftna, ctna, atna
from .sequences import create_seqdata, pad_sequences
from .transitions import (
    TRANSITION_TYPES,
    compute_transitions_3d,
    compute_weights_from_3d,
)
from .centralities import centralities, AVAILABLE_MEASURES
from .group import GroupTNA, group_model, group_tna, group_ftna, group_ctna, group_atna
from .rng import SeededRNG
from .utils import (
    row_normalize,
    minmax_scale,
    max_scale,
    rank_scale,
    apply_scaling,
)
from .special import (
    lgamma,
    incomplete_gamma_p,
    chi_square_cdf,
    incomplete_beta_i,
    f_distribution_cdf,
    t_distribution_cdf,
    erf,
    normal_cdf,
)
from .residuals import ChiSquareResult, chi_square_test, transition_residuals
from .anova import (
    AnovaResult,
    GroupComparisonResult,
    PostHocResult,
    compare_groups,
    kruskal_wallis,
    mann_whitney_u,
    one_way_anova,
    post_hoc_pairwise,
    welch_t_test,
)
from .metrics import GraphMetrics, compute_graph_metrics
from .communities import (
    AVAILABLE_METHODS,
    CommunityResult,
    communities,
    detect_communities,
    modularity,
)
from .permutation import (
    ADJUST_METHODS,
    PermutationResult,
    group_permutation_test,
    p_adjust,
    permutation_test,
)
from .stability import (
    CORRELATION_METHODS,
    DEFAULT_DROP_PROPS,
    DEFAULT_STABILITY_MEASURES,
    StabilityResult,
    estimate_cs,
    estimate_stability,
    pearson_corr,
    spearman_corr,
)
from .bootstrap import BootstrapResult, bootstrap_tna
from .tasks import AnalysisCancelled, AnalysisRunner, AnalysisTask, CancellationToken

__version__ = "0.1.0"

__all__ = [
    # Main model class
    "TNA",
    # Model building functions
    "build_model",
    "create_tna",
    "tna",
    "ftna",
    "ctna",
    "atna",
    # Sequence data and transitions
    "create_seqdata",
    "pad_sequences",
    "TRANSITION_TYPES",
    "compute_transitions_3d",
    "compute_weights_from_3d",
    # Centralities
    "centralities",
    "AVAILABLE_MEASURES",
    # Group models
    "GroupTNA",
    "group_model",
    "group_tna",
    "group_ftna",
    "group_ctna",
    "group_atna",
    # Random numbers
    "SeededRNG",
    # Utilities
    "row_normalize",
    "minmax_scale",
    "max_scale",
    "rank_scale",
    "apply_scaling",
    # Special functions
    "lgamma",
    "incomplete_gamma_p",
    "chi_square_cdf",
    "incomplete_beta_i",
    "f_distribution_cdf",
    "t_distribution_cdf",
    "erf",
    "normal_cdf",
    # Chi-square residuals
    "ChiSquareResult",
    "chi_square_test",
    "transition_residuals",
    # Group comparison
    "AnovaResult",
    "GroupComparisonResult",
    "PostHocResult",
    "compare_groups",
    "kruskal_wallis",
    "mann_whitney_u",
    "one_way_anova",
    "post_hoc_pairwise",
    "welch_t_test",
    # Graph metrics
    "GraphMetrics",
    "compute_graph_metrics",
    # Communities
    "AVAILABLE_METHODS",
    "CommunityResult",
    "communities",
    "detect_communities",
    "modularity",
    # Permutation test
    "ADJUST_METHODS",
    "PermutationResult",
    "group_permutation_test",
    "p_adjust",
    "permutation_test",
    # Stability
    "CORRELATION_METHODS",
    "DEFAULT_DROP_PROPS",
    "DEFAULT_STABILITY_MEASURES",
    "StabilityResult",
    "estimate_cs",
    "estimate_stability",
    "pearson_corr",
    "spearman_corr",
    # Bootstrap
    "BootstrapResult",
    "bootstrap_tna",
    # Tasks
    "AnalysisCancelled",
    "AnalysisRunner",
    "AnalysisTask",
    "CancellationToken",
]

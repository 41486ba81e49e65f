"""
Plotly chart fragments for training results.
Each function returns an HTML ``<div>`` (plotly.js is expected on the page).
"""
import plotly.graph_objects as go
from typing import Any, Dict, List, Sequence

from .models import ModelSelector
from .schemas import AnyModelResult, ClassificationMetrics, FeatureImportanceItem, KMeansResult


COLORS = ['#1FB8CD', '#FF6B6B', '#4ECDC4', '#45B7D1', '#96CEB4', '#FECA57', '#FF9FF3']

PLOT_CONFIG: Dict[str, Any] = {
    'displayModeBar': True,
    'displaylogo': False,
    'modeBarButtonsToRemove': ['pan2d', 'lasso2d', 'select2d'],
    'responsive': True
}


def _placeholder(message: str) -> str:
    return f"<div class='chart-placeholder'>{message}</div>"


def _style(fig: go.Figure, height: int = 400, **layout: Any) -> None:
    fig.update_layout(
        height=height,
        font=dict(size=12),
        plot_bgcolor='rgba(0,0,0,0)',
        paper_bgcolor='rgba(0,0,0,0)',
        **layout,
    )


def create_feature_importance_chart(feature_importance: Sequence[FeatureImportanceItem], model_label: str) -> str:
    """Horizontal bar chart of the ten most important features."""
    if not feature_importance:
        return _placeholder('No feature importance data available')

    top = sorted(feature_importance, key=lambda item: item.importance, reverse=True)[:10]
    features = [item.feature for item in top]
    values = [item.importance for item in top]

    fig = go.Figure(data=[
        go.Bar(
            x=values,
            y=features,
            orientation='h',
            marker=dict(color=['#1FB8CD' if item.is_selected else '#B0B0B0' for item in top]),
            text=[f'{v:.4f}' for v in values],
            textposition='auto',
        )
    ])
    _style(
        fig,
        title=f'Feature Importance - {model_label}',
        xaxis_title='Importance Score',
        yaxis_title='Features',
        margin=dict(l=120, r=50, t=50, b=50),
    )
    return fig.to_html(full_html=False, include_plotlyjs=False, config=PLOT_CONFIG, div_id="featureImportanceChart")


def create_model_comparison_chart(results: Sequence[AnyModelResult], ranking_metric: str) -> str:
    """Bar chart of every trained model's ranking score, best model highlighted."""
    if not results:
        return _placeholder('No model performance data available')

    labels = [r.algorithm_label for r in results]
    scores = [ModelSelector.score(r) for r in results]
    colors = ['#FECA57' if r.is_top_model else COLORS[i % len(COLORS)] for i, r in enumerate(results)]

    fig = go.Figure(data=[
        go.Bar(
            x=labels,
            y=scores,
            marker=dict(color=colors),
            text=[f'{s:.3f}' for s in scores],
            textposition='auto',
        )
    ])
    _style(
        fig,
        title='Model Performance Comparison',
        xaxis_title='Models',
        yaxis_title=ranking_metric,
        margin=dict(l=50, r=50, t=50, b=100),
        xaxis=dict(tickangle=45),
    )
    return fig.to_html(full_html=False, include_plotlyjs=False, config=PLOT_CONFIG, div_id="performanceChart")


def create_confusion_matrix_chart(metrics: ClassificationMetrics) -> str:
    """Heatmap of actual (rows) against predicted (columns) classes."""
    if not metrics.confusion_matrix:
        return _placeholder('No confusion matrix available')

    labels: List[str] = list(metrics.class_labels)
    fig = go.Figure(data=[go.Heatmap(
        z=metrics.confusion_matrix,
        x=labels,
        y=labels,
        colorscale='Blues',
        text=metrics.confusion_matrix,
        texttemplate='%{text}',
    )])
    _style(
        fig,
        title=f'Confusion Matrix<br><sub>Accuracy {metrics.accuracy:.1%}, macro F1 {metrics.f1:.3f}</sub>',
        xaxis_title='Predicted',
        yaxis_title='Actual',
        yaxis=dict(autorange='reversed'),
        margin=dict(l=80, r=50, t=70, b=80),
    )
    return fig.to_html(full_html=False, include_plotlyjs=False, config=PLOT_CONFIG, div_id="confusionMatrixChart")


def create_cluster_sizes_chart(result: KMeansResult) -> str:
    """Pie chart of how many rows landed in each cluster."""
    if not result.cluster_assignments:
        return _placeholder('No cluster assignments available')

    k = len(result.centroids)
    sizes = [result.cluster_assignments.count(c) for c in range(k)]
    fig = go.Figure(data=[go.Pie(
        labels=[f'Cluster {c + 1}' for c in range(k)],
        values=sizes,
        hole=0.3,
        marker=dict(colors=COLORS[:k]),
        textinfo='label+percent+value',
        textposition='auto'
    )])
    _style(
        fig,
        title=f'Cluster Sizes<br><sub>{len(result.cluster_assignments):,} rows in {k} clusters</sub>',
        height=350,
        margin=dict(l=20, r=20, t=70, b=20),
    )
    return fig.to_html(full_html=False, include_plotlyjs=False, config=PLOT_CONFIG, div_id="clusterSizesChart")

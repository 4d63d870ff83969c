from inspect import signature
from typing import Annotated, Callable, NamedTuple, get_origin, get_args
import logging
import time

import click
import matplotlib.pyplot as plt
import numpy as np
import optuna

from owlqn.function_generators import lasso
from owlqn.function_generators.losses import LOSSES
from owlqn.optimizers import OPTIMIZERS
from owlqn.optimizers.numeric import Options, ReturnCode, optimize
from owlqn.optimizers.scipy import minimize_lbfgsb_split
from owlqn.utils import Interval, PROBLEM_ARGS

logger = logging.getLogger(__name__)


class Problem(NamedTuple):
    loss_fn: Callable
    A: object
    y: np.ndarray
    lam: float
    f_star: float

    @property
    def n_features(self) -> int:
        return self.A.shape[1]


def generate_problem(loss_name: str = "squared", n_samples: int = 100, n_features: int = 50,
                     n_informative: int = 5, lam: float = 0.1, seed: int | None = None,
                     density: float | None = None) -> Problem:
    """Draw a random problem and compute its reference optimum with the split L-BFGS-B solver."""
    loss_fn = LOSSES[loss_name]
    if loss_name == "squared":
        A, y, _ = lasso.make_lasso_problem(n_samples, n_features, n_informative, seed=seed, density=density)
    else:
        A, y, _ = lasso.make_classification_problem(n_samples, n_features, n_informative, seed=seed)
    x_ref = minimize_lbfgsb_split(loss_fn, np.zeros(n_features), A, y, lam)
    f_star = lasso.l1_objective(loss_fn, x_ref, A, y, lam)
    return Problem(loss_fn, A, y, lam, f_star)


def generate_test_problems(n_problems: int, n_features: int, loss_names=None,
                           seed: int | None = None) -> list[Problem]:
    loss_names = loss_names or LOSSES.keys()
    rng = np.random.default_rng(seed)
    problems = []
    for loss_name in loss_names:
        for _ in range(n_problems):
            problem_seed = int(rng.integers(2**31))
            problems.append(generate_problem(loss_name, n_samples=2 * n_features,
                                             n_features=n_features, seed=problem_seed))
    return problems


def multivariate_model_runner(minimizer: Callable, problems: list[Problem], **kwargs) -> tuple[float, float]:
    """
    Return a univariate metric for performance of the minimizer: the mean log10 of the relative
    objective error against each problem's reference optimum, plus the time taken.

    Kwargs are hyper-parameters forwarded to the minimizer.
    """
    log_rel_errors = []
    time_start = time.time()

    for problem in problems:
        x_hat = minimizer(loss_fn=problem.loss_fn, initial_guess=np.zeros(problem.n_features),
                          A=problem.A, y=problem.y, lam=problem.lam, **kwargs)
        f_hat = lasso.l1_objective(problem.loss_fn, x_hat, problem.A, problem.y, problem.lam)
        rel_error = abs(f_hat - problem.f_star) / max(abs(problem.f_star), 1e-12)
        if rel_error <= 1e-12:
            log_rel_errors.append(-12)  # Avoid log-zero issues when very small numbers
        else:
            log_rel_errors.append(np.log10(rel_error))

    time_elapsed = time.time() - time_start
    logger.info("Trial with params %s took %.2fs, mean log rel errors: %.3f",
                kwargs, time_elapsed, np.mean(log_rel_errors))

    return float(np.mean(log_rel_errors)), time_elapsed


def univariate_model_runner(**kwargs):
    log_rel_error, time_elapsed = multivariate_model_runner(**kwargs)
    return log_rel_error + time_elapsed


def make_optuna_objective(minimizer_to_test: Callable, problems: list[Problem]) -> Callable:
    sig = signature(minimizer_to_test)

    # The term "trial" is magic used by Optuna
    def optuna_loss(trial):
        kwargs = {'minimizer': minimizer_to_test, 'problems': problems}
        for name, param in sig.parameters.items():
            if name in PROBLEM_ARGS:
                continue
            anno = param.annotation
            if get_origin(anno) is Annotated:
                base_type, meta = get_args(anno)
                if isinstance(meta, Interval):
                    if base_type is int:
                        if meta.log:
                            step = None
                        else:
                            step = meta.step if meta.step is not None else 1
                        kwargs[name] = trial.suggest_int(name, meta.low, meta.high,
                                                         step=step, log=meta.log)
                    else:
                        if meta.log:
                            step = None
                        else:
                            step = meta.step if meta.step is not None else (meta.high - meta.low) / 100
                        kwargs[name] = trial.suggest_float(name, meta.low, meta.high,
                                                           step=step, log=meta.log)
                elif isinstance(meta, list) and base_type is str:
                    kwargs[name] = trial.suggest_categorical(name, meta)
                else:
                    raise ValueError(f"Unsupported metadata for {name}: {meta}")
            else:
                kwargs[name] = param.default

        return univariate_model_runner(**kwargs)

    return optuna_loss


def tune_minimizer(minimizer_to_test: Callable, problems: list[Problem], n_trials: int = 50) -> dict:
    """
    Tune the minimizer's Annotated hyper-parameters using Optuna.

    :param minimizer_to_test: The minimizer function to tune.
    :param problems: Problems the trials are scored on.
    :param n_trials: Number of trials for tuning.
    :return: The best parameters found by Optuna.
    """
    objective = make_optuna_objective(minimizer_to_test, problems=problems)
    study = optuna.create_study(direction="minimize")
    study.optimize(objective, n_trials=n_trials)
    return study.best_params


def benchmark_all_optimizers(n_tune_problems: int = 2, n_test_problems: int = 2,
                             n_tuning_trials: int = 10, n_features: int = 20, save_path: str | None = None,
                             optimizer_names: list[str] | None = None,
                             seed: int | None = None):
    """
    Benchmark optimizers and create a scatter plot.

    Args:
        n_tune_problems: Number of problems per loss used for tuning
        n_test_problems: Number of problems per loss used for testing
        n_tuning_trials: Number of trials for hyperparameter tuning
        n_features: Number of parameters of the generated problems
        save_path: Path to save the plot
        optimizer_names: List of optimizer names to test. If None, test all optimizers.
    """
    rng = np.random.default_rng(seed)
    tune_problems = generate_test_problems(n_tune_problems, n_features, seed=int(rng.integers(2**31)))
    test_problems = generate_test_problems(n_test_problems, n_features, seed=int(rng.integers(2**31)))

    if optimizer_names is None:
        optimizer_names = list(OPTIMIZERS.keys())
    else:
        unknown = [name for name in optimizer_names if name not in OPTIMIZERS]
        for name in unknown:
            logger.warning("Optimizer '%s' not found, skipping...", name)
        optimizer_names = [name for name in optimizer_names if name in OPTIMIZERS]

    logger.info("Benchmarking %d optimizers on %d tune / %d test problems, %d tuning trials",
                len(optimizer_names), len(tune_problems), len(test_problems), n_tuning_trials)

    results = []
    for i, name in enumerate(optimizer_names):
        logger.info("[%d/%d] Testing %s...", i + 1, len(optimizer_names), name)
        optimizer = OPTIMIZERS[name]
        best_params = tune_minimizer(optimizer, tune_problems, n_trials=n_tuning_trials)
        log_rel_error, time_elapsed = multivariate_model_runner(
            minimizer=optimizer,
            problems=test_problems,
            **best_params
        )
        results.append({
            'name': name,
            'log_rel_error': log_rel_error,
            'time_elapsed': time_elapsed,
            'best_params': best_params
        })

    if results:
        create_benchmark_plot(results, save_path=save_path)

    return results


def create_benchmark_plot(results, save_path: str | None = None):
    """Create a scatter plot of optimizer performance."""
    names = [r['name'] for r in results]
    log_errors = [r['log_rel_error'] for r in results]
    times = [r['time_elapsed'] for r in results]

    plt.figure(figsize=(12, 8))
    plt.scatter(times, log_errors, s=100, alpha=0.7)

    for i, name in enumerate(names):
        plt.annotate(name.replace('minimize_', ''),
                     (times[i], log_errors[i]),
                     xytext=(5, 5), textcoords='offset points',
                     fontsize=9, alpha=0.8)

    plt.xlabel('Time Elapsed (seconds)')
    plt.ylabel('Log Relative Error')
    plt.title('Optimizer Performance Comparison\n(Lower and Left is Better)')
    plt.grid(True, alpha=0.3)
    _finish_plot(save_path)


def plot_convergence(histories: dict[str, list[float]], f_star: float, save_path: str | None = None):
    """Plot fval_history - f* for each labelled run on a log axis."""
    plt.figure(figsize=(10, 6))
    for label, history in histories.items():
        gap = np.maximum(np.asarray(history) - f_star, 1e-16)
        plt.semilogy(np.arange(len(gap)), gap, label=label)
    plt.xlabel('Iteration')
    plt.ylabel('f(x_k) - f*')
    plt.title('OWL-QN convergence')
    plt.grid(True, alpha=0.3)
    plt.legend()
    _finish_plot(save_path)


def _finish_plot(save_path: str | None):
    plt.tight_layout()
    if save_path is not None:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        logger.info("Plot saved as '%s'", save_path)
        plt.close()
    else:
        plt.show()


@click.group()
@click.option('--verbose', is_flag=True, help='Enable debug logging')
def cli(verbose):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@cli.command()
@click.option('--loss', type=click.Choice(list(LOSSES.keys())), default='squared', help='Smooth loss')
@click.option('--n-samples', default=200, help='Number of rows of the design matrix')
@click.option('--n-features', default=100, help='Number of parameters')
@click.option('--n-informative', default=10, help='Non-zeros in the ground truth')
@click.option('--lam', default=0.1, help='L1 regularization constant')
@click.option('--m', default=6, help='Limited memory size')
@click.option('--maxiter', default=0, help='Maximum iterations (0 for unbounded)')
@click.option('--epsg', default=1e-5, help='Pseudo-gradient norm tolerance')
@click.option('--display', default=0, help='Progress verbosity (0-3)')
@click.option('--density', default=None, type=float, help='Use a sparse design with this density')
@click.option('--seed', default=None, type=int, help='Random seed for reproducibility')
@click.option('--plot', 'plot_path', default=None, help='Save a convergence plot to this path')
def solve(loss, n_samples, n_features, n_informative, lam, m, maxiter, epsg, display, density, seed, plot_path):
    """Run OWL-QN on a generated problem."""
    problem = generate_problem(loss, n_samples=n_samples, n_features=n_features,
                               n_informative=n_informative, lam=lam, seed=seed, density=density)
    options = Options(m=m, maxiter=maxiter, epsg=epsg, display=display)
    x, result = optimize(problem.loss_fn, np.zeros(n_features), problem.A, problem.y, problem.lam, options)

    click.echo(f"Return code: {int(result.return_code)} ({ReturnCode(result.return_code).name})")
    click.echo(f"Iterations: {result.iterations}")
    click.echo(f"Objective: {result.fval:.10g} (reference {problem.f_star:.10g})")
    click.echo(f"Non-zeros: {np.count_nonzero(x)}/{n_features}")

    if plot_path is not None:
        plot_convergence({f"OWL-QN m={m}": result.fval_history}, problem.f_star, save_path=plot_path)


@cli.command()
@click.option('--n-trials', default=50, help='Number of trials for hyperparameter tuning')
@click.option('--n-problems', default=2, help='Problems per loss used for tuning')
@click.option('--n-features', default=20, help='Number of parameters')
@click.option('--optimizer', type=click.Choice(list(OPTIMIZERS.keys())),
              default='minimize_owlqn', help='Which optimizer to tune')
def tune(n_trials, n_problems, n_features, optimizer):
    """Tune hyperparameters for a specific optimizer."""
    problems = generate_test_problems(n_problems, n_features)
    best_params = tune_minimizer(OPTIMIZERS[optimizer], problems, n_trials=n_trials)

    click.echo(f"Best parameters found for {optimizer}:")
    for param, value in best_params.items():
        click.echo(f"  {param}: {value}")


@cli.command()
def list_optimizers():
    """List all available optimizers."""
    click.echo("Available optimizers:")
    click.echo("-" * 40)
    for i, name in enumerate(sorted(OPTIMIZERS.keys()), 1):
        algo_name = name.replace('minimize_', '').replace('_', ' ').title()
        click.echo(f"{i:2d}. {name:25} ({algo_name})")
    click.echo(f"\nTotal: {len(OPTIMIZERS)} optimizers")


@cli.command()
@click.option('--n-tune-problems', default=2, help='Problems per loss used for tuning')
@click.option('--n-test-problems', default=2, help='Problems per loss used for testing')
@click.option('--n-tuning-trials', default=10, help='Number of trials for hyperparameter tuning')
@click.option('--save-path', default=None, help='Path to save the plot')
@click.option('--n-features', default=20, help='Number of parameters of the generated problems')
@click.option('--seed', default=None, type=int, help='Random seed for reproducibility')
@click.option('--optimizers', multiple=True, type=click.Choice(list(OPTIMIZERS.keys())),
              help='Specific optimizers to test (can specify multiple times). If not specified, test all optimizers.')
def benchmark(n_tune_problems, n_test_problems, n_tuning_trials, save_path, n_features, seed, optimizers):
    """Benchmark optimizers and create a scatter plot."""
    optimizer_list = list(optimizers) if optimizers else None

    results = benchmark_all_optimizers(n_tune_problems=n_tune_problems,
                                       n_test_problems=n_test_problems,
                                       n_tuning_trials=n_tuning_trials,
                                       n_features=n_features,
                                       save_path=save_path,
                                       seed=seed,
                                       optimizer_names=optimizer_list)

    click.echo("BENCHMARK SUMMARY")
    for result in sorted(results, key=lambda r: r['log_rel_error']):
        click.echo(f"{result['name']:25} | log_rel_error: {result['log_rel_error']:8.3f} | time: {result['time_elapsed']:6.2f}s")


if __name__ == '__main__':
    cli()

import logging
from typing import Iterable, Optional

from lockfix.core.model import ActionPlan, RemediationAction


def update_path(action: RemediationAction, vuln_path: str, root_name: Optional[str] = None) -> Optional[str]:
    """
    Ancestor chain that reaches the vulnerable module, ending in `module@target`.

    `a>b>c>d` updated with `c@2.0.0` becomes `a>b>c@2.0.0`. Returns None when
    the module does not appear in the chain.
    """
    chain = vuln_path.split(">")
    if root_name and len(chain) > 1 and chain[0] == root_name:
        chain = chain[1:]
    if action.module not in chain:
        return None
    return ">".join(chain[:chain.index(action.module)] + [action.spec])


def classify(actions: Iterable[RemediationAction], root_name: Optional[str] = None) -> ActionPlan:
    plan = ActionPlan()

    for action in actions:
        if action.is_major:
            plan.major.add(action.spec)
        elif action.action == "install":
            plan.install.add(action.spec)
        elif action.action == "update":
            if not action.resolves:
                logging.warning(f"Skipping update of {action.spec}: it lists no vulnerable paths")
                continue
            for vuln in action.resolves:
                path = update_path(action, vuln.path, root_name)
                if path is None:
                    logging.warning(
                        f"Skipping update of {action.spec}: advisory {vuln.id} path "
                        f"'{vuln.path}' does not include {action.module}"
                    )
                    continue
                plan.update.add(path)
        elif action.action == "review":
            plan.review.add(action)
        else:
            logging.warning(f"Ignoring unknown audit action '{action.action}' for {action.module}")

    logging.debug(
        f"Classified {len(plan.install)} install, {len(plan.update)} update, "
        f"{len(plan.major)} major, {len(plan.review)} review"
    )
    return plan

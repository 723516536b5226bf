from reason_forge.llm import Message
from reason_forge.reasoning.types import Goal, ReasoningNode


def build_messages(system_prompt: str | None, user_prompt: str | None = None,
                   history: list[Message] | None = None) -> list[Message]:
    """System prompt, then any prior dialog, then the new user turn."""
    messages = []
    if system_prompt:
        messages.append(Message("system", system_prompt))
    messages.extend(history or [])
    if user_prompt:
        messages.append(Message("user", user_prompt))
    return messages


CONCLUSION_FORMAT = """Format your final conclusion as:
CONCLUSION: [Your answer]
CONFIDENCE: [Score between 0 and 1]"""

CONFIDENCE_SCALE = """Include a confidence score between 0 and 1, where:
- 0.9-1.0: Virtually certain
- 0.8-0.9: Highly confident
- 0.6-0.8: Moderately confident
- 0.4-0.6: Somewhat uncertain
- 0.2-0.4: Highly uncertain
- 0.0-0.2: Pure guess"""

SCORE_FORMAT = "End your analysis with a line of the form 'SCORE: x' where x is between 0 and 1."


class ChainOfThoughtPrompts:
    """Prompt construction for step-by-step reasoning."""

    system_prompt = f"""You are an AI assistant that solves problems using chain-of-thought reasoning.
Follow these guidelines:
1. Break down complex problems into clear, logical steps
2. Explain your thinking at each step
3. Be thorough but concise
4. Consider multiple approaches when appropriate
5. Verify your answer at the end
6. Stay focused on the specified goal and objectives
7. Refer to the task plan when provided

{CONFIDENCE_SCALE}

{CONCLUSION_FORMAT}"""

    planner_system_prompt = ("You are a strategic planner and problem solver. "
                             "Your job is to break down problems into clear, executable tasks.")

    verifier_system_prompt = "Your job is to carefully verify the conclusion against the reasoning steps."

    @staticmethod
    def create_goal_section(goal: Goal | None, include_objectives: bool = False) -> str:
        if goal is None:
            return ""
        section = f"This is to achieve the goal: {goal.name}\n"
        if goal.description:
            section += f"Goal description: {goal.description}\n"
        if include_objectives and goal.objectives:
            section += "\nObjectives to be achieved:\n"
            for index, objective in enumerate(goal.objectives, start=1):
                status = "(COMPLETED)" if objective.completed else "(NOT COMPLETED)"
                section += f"{index}. {objective.description} {status}\n"
        return section + "\n"

    @staticmethod
    def format_steps(steps: list[ReasoningNode]) -> str:
        """First node is the query observation, the rest are numbered steps."""
        lines = []
        for index, node in enumerate(steps):
            if index == 0:
                lines.append(f"Original query: {node.content}")
            else:
                lines.append(f"Step {index}: {node.content}")
        return "\n\n".join(lines)

    @classmethod
    def step_prompt(cls, query: str, steps: list[ReasoningNode], step_number: int,
                    goal: Goal | None = None, task_plan: str | None = None) -> str:
        prompt = f"I need to solve the following problem using step-by-step reasoning:\n{query}\n\n"
        prompt += cls.create_goal_section(goal)
        if task_plan:
            prompt += f"I have the following task plan to guide my reasoning:\n{task_plan}\n\n"
        prompt += f"Here's my chain of thought reasoning so far:\n{cls.format_steps(steps)}\n\n"
        prompt += f"Now I'll continue with Step {step_number}:"
        return prompt

    @staticmethod
    def continuation_prompt(recap: str, step_number: int) -> str:
        return f"{recap}\n\nContinue the chain of thought with Step {step_number}:"

    @classmethod
    def conclusion_prompt(cls, query: str, steps: list[ReasoningNode], goal: Goal | None = None) -> str:
        prompt = f"I've been solving the following problem using step-by-step reasoning:\n{query}\n\n"
        prompt += cls.create_goal_section(goal, include_objectives=True)
        prompt += f"Here's my chain of thought reasoning:\n{cls.format_steps(steps)}\n\n"
        prompt += (f"Based on the above reasoning steps{' and goal' if goal else ''}, "
                   "I'll now provide my final conclusion and confidence score (0-1).\nCONCLUSION:")
        return prompt

    @classmethod
    def verification_prompt(cls, query: str, conclusion: str, steps: list[ReasoningNode]) -> str:
        return f"""Please verify the following conclusion for this problem:
{query}

Conclusion: {conclusion}

The reasoning steps were:
{cls.format_steps(steps)}

Verify if the conclusion:
1. Directly answers the original question
2. Is logically supported by the reasoning chain
3. Doesn't contradict any of the reasoning steps
4. Doesn't include new information not derived from the steps

Provide your verification analysis:"""

    @classmethod
    def task_plan_prompt(cls, query: str, max_tasks: int, goal: Goal | None = None,
                         decompose_complex_tasks: bool = False, prioritize_tasks: bool = False) -> str:
        prompt = f"I need to create a task plan for solving the following problem:\n{query}\n\n"
        if goal is not None:
            prompt += cls.create_goal_section(goal, include_objectives=True).replace(
                "This is to achieve the goal:", "This task plan should help achieve the following goal:")
        prompt += f"Please create a task plan with up to {max_tasks} tasks"
        if decompose_complex_tasks:
            prompt += ", decomposing complex tasks into subtasks"
        if prioritize_tasks:
            prompt += ", ordered by priority"
        prompt += """.
For each task, provide:
1. Task description
2. Estimated complexity (LOW, MEDIUM, HIGH)
3. Dependencies on other tasks (if any)
4. Expected outcome"""
        return prompt


class SocraticPrompts:
    """Prompt construction for question-driven exploration."""

    question_system_prompt = (
        "You are a master of Socratic questioning. Your task is to generate questions that help "
        "explore the given problem from multiple angles. Generate thoughtful questions that probe "
        "assumptions, clarify concepts, examine evidence, and explore implications. "
        "Each question should be distinct and address a different aspect of the problem. "
        "Write one question per line and nothing else."
    )

    answer_system_prompt = (
        "You are a careful thinker answering one Socratic question at a time. "
        "Answer the question directly, building on the insights gathered so far."
    )

    synthesis_system_prompt = (
        "You are an expert in synthesizing complex information. Your task is to integrate the insights "
        "from a Socratic questioning process into a coherent conclusion. Provide a clear synthesis "
        "that captures the key discoveries, resolves tensions where possible, and offers a well-supported "
        "answer to the original problem.\n\n" + CONCLUSION_FORMAT
    )

    verification_system_prompt = (
        "Your job is to critically verify a conclusion reached through Socratic questioning. "
        + SCORE_FORMAT
    )

    @staticmethod
    def format_insights(insights: list[str]) -> str:
        return "\n\n".join(f"Insight {i}: {insight}" for i, insight in enumerate(insights, start=1))

    @staticmethod
    def initial_questions_prompt(query: str) -> str:
        return f'I need to explore this problem through Socratic questioning: "{query}"'

    @classmethod
    def answer_prompt(cls, query: str, question: str, insights: list[str]) -> str:
        prompt = f'Problem: "{query}"\n\n'
        if insights:
            prompt += f"Insights so far:\n\n{cls.format_insights(insights)}\n\n"
        prompt += f"Question: {question}\n\nAnswer:"
        return prompt

    @classmethod
    def follow_up_prompt(cls, query: str, question: str, answer: str, insights: list[str]) -> str:
        return (f'Problem: "{query}"\n\n'
                f"Last question: {question}\n"
                f"Answer: {answer}\n\n"
                f"Insights so far:\n\n{cls.format_insights(insights)}\n\n"
                "Generate follow-up questions that dig deeper into what remains unclear.")

    @classmethod
    def synthesis_prompt(cls, query: str, insights: list[str], custom_instructions: bool = False) -> str:
        if custom_instructions:
            return (f'Here is the problem: "{query}"\n\n'
                    f"Here are the insights generated:\n\n{cls.format_insights(insights)}\n\n"
                    "Please provide a comprehensive response to this problem.")
        return (f'I\'ve explored this problem through Socratic questioning: "{query}"\n\n'
                f"Here are the insights generated:\n\n{cls.format_insights(insights)}\n\n"
                "Please synthesize these insights into a coherent conclusion.\n" + CONCLUSION_FORMAT)

    @classmethod
    def verification_prompt(cls, query: str, conclusion: str, insights: list[str]) -> str:
        prompt = f'Problem: "{query}"\n\n'
        if insights:
            prompt += f"Insights gathered:\n\n{cls.format_insights(insights)}\n\n"
        return (prompt + f"Conclusion: {conclusion}\n\n"
                "Does the conclusion answer the problem and follow from the insights? "
                "Point out any gaps.\n" + SCORE_FORMAT)


class DialogicPrompts:
    """Prompt construction for proposer/critic debate."""

    history_system_prompt = "Reason through this problem step by step."

    proposer_system_prompt = (
        "You are an AI assistant tasked with proposing solutions to problems. "
        "Your goal is to provide a clear, step-by-step solution to the given problem. "
        "Be thorough, logical, and consider various angles of the problem."
    )

    critic_system_prompt = (
        "You are an AI assistant tasked with providing thoughtful critiques of proposed solutions. "
        "Your goal is to identify weaknesses, oversights, and alternative approaches that weren't considered. "
        "Be constructive but thorough in your criticism. Ask important questions that "
        "challenge assumptions and explore different perspectives."
    )

    refiner_system_prompt = (
        "You are an AI assistant tasked with refining solutions based on critical feedback. "
        "Your goal is to improve the solution by addressing the critiques while maintaining "
        "the strengths of the original approach. Provide a revised, well-reasoned solution "
        "that is better than your previous proposal."
    )

    synthesis_system_prompt = (
        "You are an AI assistant tasked with synthesizing a final solution from a dialog. "
        "Review the entire conversation and create a comprehensive, refined solution that "
        "incorporates the best insights and addresses the criticisms raised throughout the dialog."
    )

    @staticmethod
    def proposal_prompt(query: str) -> str:
        return f"Please propose a solution to the following problem: {query}"

    @staticmethod
    def critique_prompt(query: str, proposal: str) -> str:
        return (f'Here is a proposed solution to the problem "{query}":\n\n{proposal}\n\n'
                "Please critique this solution. What weaknesses, oversights, or alternative approaches "
                "should be considered? What important questions or considerations are missing?")

    @staticmethod
    def synthesis_prompt(query: str) -> str:
        return f'Based on the above dialog about the problem "{query}", please synthesize a final, comprehensive solution.'
